"""File utilities for secure file operations."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def write_file_atomic(path: Path, content: str, mode: int) -> None:
    """Write file with permissions set atomically to prevent TOCTOU races.

    Uses os.open() with O_CREAT | O_EXCL to atomically create the file
    with the correct permissions, avoiding a race window between write and chmod.

    Args:
        path: Path to write to
        content: File content
        mode: File permission mode (e.g., 0o755, 0o444)

    Raises:
        FileExistsError: If the file already exists
        OSError: If file creation fails
    """
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    try:
        os.write(fd, content.encode())
    finally:
        os.close(fd)


def remove_quietly(path: Path | str) -> bool:
    """Remove a file or directory tree, ignoring anything that goes wrong.

    Returns:
        True if something was removed.
    """
    path = Path(path)
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.debug(f"Cleanup of {path} failed: {e}")
        return False

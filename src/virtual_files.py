"""Ephemeral files injected into the sandbox.

This module owns everything a session writes to disk for its own use:
- synthetic /etc/resolv.conf and /etc/hosts for restricted networking
- the readiness-wait script run as the sandbox entrypoint

All files live in one private temp directory, are bound read-only into the
sandbox, and are removed when the session ends.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from fileutils import remove_quietly, write_file_atomic
from model.mount_operation import MountOperation

logger = logging.getLogger(__name__)

TEMP_PREFIX = "agent-sandbox-"


@dataclass
class VirtualFile:
    """A virtual file to inject into the sandbox."""

    source_path: str  # Path on host (temp file)
    dest_path: str  # Path in sandbox
    description: str  # Human-readable description


@dataclass
class VirtualFileManager:
    """Creates and tracks ephemeral files for one session.

    The temp directory is created on first use; cleanup() is idempotent.
    """

    base_dir: str | None = None
    tmp_dir: str | None = None
    files: list[VirtualFile] = field(default_factory=list)

    def _ensure_dir(self) -> Path:
        if self.tmp_dir is None:
            self.tmp_dir = tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=self.base_dir)
            logger.debug(f"Created ephemeral directory {self.tmp_dir}")
        return Path(self.tmp_dir)

    def add_file(self, content: str, dest_path: str, description: str, mode: int = 0o444) -> str:
        """Write a file and record where it goes in the sandbox.

        Args:
            content: File content
            dest_path: Destination path in sandbox (e.g., /etc/hosts)
            description: Human-readable description
            mode: Permission bits of the host file

        Returns:
            Path to the created temp file

        Raises:
            OSError: If file creation fails (temp dir is cleaned up)
        """
        tmp = self._ensure_dir()
        file_path = tmp / Path(dest_path).name
        try:
            write_file_atomic(file_path, content, mode)
        except OSError:
            # Clean up temp directory on failure to avoid leaking
            self.cleanup()
            raise

        self.files.append(VirtualFile(
            source_path=str(file_path),
            dest_path=dest_path,
            description=description,
        ))
        return str(file_path)

    def add_script(self, content: str, name: str, description: str) -> str:
        """Write an executable script, visible at the same path inside the sandbox."""
        tmp = self._ensure_dir()
        return self.add_file(content, str(tmp / name), description, mode=0o555)

    def get_file_map(self) -> dict[str, str]:
        """Get mapping of dest_path -> source_path."""
        return {vf.dest_path: vf.source_path for vf in self.files}

    def get_summary(self) -> list[str]:
        """Get human-readable summary of virtual files."""
        return [f"{vf.dest_path}: {vf.description}" for vf in self.files]

    def get_operations(self) -> list[MountOperation]:
        """Read-only binds for every file, in creation order."""
        return [MountOperation.bind(vf.source_path, sandbox_path=vf.dest_path) for vf in self.files]

    def cleanup(self) -> None:
        """Remove the temp directory. Safe to call more than once."""
        if self.tmp_dir is None:
            return
        if remove_quietly(self.tmp_dir):
            logger.debug(f"Removed ephemeral directory {self.tmp_dir}")


def clean_stale_dirs(base_dir: str | None = None) -> tuple[int, int]:
    """Remove ephemeral directories left behind by killed sessions.

    Returns:
        (removed, failed) counts
    """
    removed = 0
    failed = 0
    tmp_dir = Path(base_dir or tempfile.gettempdir())
    for item in sorted(tmp_dir.glob(f"{TEMP_PREFIX}*")):
        if not item.is_dir():
            continue
        if remove_quietly(item):
            print(f"  Removed: {item}")
            removed += 1
        else:
            print(f"  Error removing {item}")
            failed += 1
    return removed, failed

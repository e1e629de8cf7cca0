"""Path pattern resolution against the live filesystem.

Supports three shapes of pattern, all matched with fnmatch semantics per path
segment (a leading dot is matched by wildcards, as with find -name):

    literal     .env, /usr/bin, docs/secret.txt
    glob        *.pem, config/*.json, id_[re]*
    recursive   **/wallet.dat, src/**/*.key, a/**/b/**/*.ext

Each ** stands for zero or more whole path segments. Directory walks do not
follow symlinked directories.
"""

from __future__ import annotations

import logging
import os
from fnmatch import fnmatchcase
from pathlib import Path

logger = logging.getLogger(__name__)

MAGIC_CHARS = ("*", "?", "[")


def has_magic(pattern: str) -> bool:
    """Check whether a pattern contains any wildcard characters."""
    return any(c in pattern for c in MAGIC_CHARS)


def split_literal_prefix(pattern: str) -> tuple[str, str]:
    """Split an absolute pattern into (literal base directory, remainder).

    /usr/lib/*/python3 -> ("/usr/lib", "*/python3")
    /etc/hosts         -> ("/etc/hosts", "")
    """
    segments = pattern.split("/")
    for i, segment in enumerate(segments):
        if has_magic(segment):
            base = "/".join(segments[:i]) or "/"
            return base, "/".join(segments[i:])
    return pattern.rstrip("/") or "/", ""


def _segments(pattern: str) -> list[str]:
    """Split into segments, dropping empty/'.' parts and collapsing runs of **."""
    result: list[str] = []
    for segment in pattern.split("/"):
        if segment in ("", "."):
            continue
        if "**" in segment and segment != "**":
            # foo**bar within one segment behaves like foo*bar
            while "**" in segment:
                segment = segment.replace("**", "*")
        if segment == "**" and result and result[-1] == "**":
            continue
        result.append(segment)
    return result


def _children(directory: Path) -> list[Path]:
    try:
        return sorted(directory.iterdir())
    except OSError as e:
        logger.debug(f"Cannot list {directory}: {e}")
        return []


def _is_walkable(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


def _match(directory: Path, segments: list[str], found: set[Path]) -> None:
    if not segments:
        if directory.exists():
            found.add(directory)
        return

    head, rest = segments[0], segments[1:]

    if head == "**":
        # Zero segments consumed
        _match(directory, rest, found)
        # One or more segments consumed
        for child in _children(directory):
            if _is_walkable(child):
                _match(child, segments, found)
            elif not rest and child.exists():
                found.add(child)
        return

    if has_magic(head):
        for child in _children(directory):
            if not fnmatchcase(child.name, head):
                continue
            if rest:
                if child.is_dir():
                    _match(child, rest, found)
            elif child.exists():
                found.add(child)
        return

    child = directory / head
    if rest:
        if child.is_dir():
            _match(child, rest, found)
    elif child.exists():
        found.add(child)


def resolve(base_path: str | Path, pattern: str | None) -> list[Path]:
    """Resolve a pattern under base_path into existing paths.

    Args:
        base_path: Absolute directory the pattern is relative to
        pattern: Literal path, glob, or ** pattern (empty means base_path itself)

    Returns:
        Sorted, deduplicated list of absolute paths that exist right now.
        An empty list means no match; callers decide whether to warn.
    """
    base = Path(base_path)

    if not pattern:
        return [base] if base.exists() else []

    if not has_magic(pattern):
        candidate = Path(os.path.normpath(base / pattern.lstrip("/")))
        return [candidate] if candidate.exists() else []

    found: set[Path] = set()
    _match(base, _segments(pattern), found)
    logger.debug(f"Pattern {pattern!r} under {base}: {len(found)} match(es)")
    return sorted(found)


def resolve_absolute(pattern: str) -> list[Path]:
    """Resolve an absolute pattern, walking only below its literal prefix."""
    base, rest = split_literal_prefix(pattern)
    return resolve(base, rest)

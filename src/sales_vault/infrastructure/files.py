"""Filesystem helpers: atomic writes and markdown scans.

Every write in the package goes through :func:`atomic_write_text`, which
writes to a temporary file in the target directory and renames it into
place.  A reader therefore sees either the old file or the new one, never a
partial write.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


def ensure_dir(path: Path) -> bool:
    """Create *path* (and parents) if missing; True when it was created."""
    if path.is_dir():
        return False
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Created directory %s", path)
    return True


def _write_temp(path: Path, text: str) -> str:
    """Write *text* to a synced temp file beside *path*; returns its name."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
    except BaseException:
        _discard(tmp_name)
        raise
    return tmp_name


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass


def atomic_write_text(path: Path, text: str) -> None:
    """Replace *path* with *text* in one rename."""
    tmp_name = _write_temp(path, text)
    try:
        os.replace(tmp_name, path)
    except BaseException:
        _discard(tmp_name)
        raise


def create_exclusive(path: Path, text: str) -> bool:
    """Write *text* to *path* only if nothing exists there yet.

    Returns False when the path is already taken.  The finished temp file
    is hard-linked into place, which fails if the name exists, so *path*
    either does not exist or holds all of *text*.  On error nothing is
    left behind.
    """
    tmp_name = _write_temp(path, text)
    try:
        os.link(tmp_name, path)
    except FileExistsError:
        return False
    finally:
        _discard(tmp_name)
    return True


def read_text(path: Path) -> str | None:
    """Contents of *path*, or None when it does not exist or cannot be read."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping unreadable file %s: %s", path, exc)
        return None


def iter_markdown(directory: Path) -> list[Path]:
    """Every ``.md`` file below *directory*, sorted, hidden entries skipped."""
    if not directory.is_dir():
        return []
    found = []
    for path in directory.rglob(f"*{MARKDOWN_SUFFIX}"):
        rel = path.relative_to(directory)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if path.is_file():
            found.append(path)
    return sorted(found)

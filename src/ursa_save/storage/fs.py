"""File helpers for the file-backed storage and save-file export."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def ensure_dir(path: Path, *, mode: int = 0o700) -> Path:
    """Create path (and parents) if needed, owner-only where the platform allows it."""
    path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(mode)
    except OSError:
        logger.debug("chmod %o not applied to %s", mode, path, exc_info=True)
    return path


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace path's content with data in one step.

    The bytes go to a synced temp file in the same directory, which is then
    renamed over path. Readers see either the old content or the new one.
    """
    directory = ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=TEMP_SUFFIX, dir=directory)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8"))


def read_text_or_none(path: Path) -> Optional[str]:
    """UTF-8 content of path, or None if it does not exist. Other OS errors propagate."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def list_files(directory: Path, suffix: str) -> List[Path]:
    """Regular files in directory ending with suffix, sorted by name. Temp files are skipped."""
    if not directory.is_dir():
        return []
    return sorted(
        entry
        for entry in directory.iterdir()
        if entry.is_file() and entry.name.endswith(suffix) and not entry.name.endswith(TEMP_SUFFIX)
    )

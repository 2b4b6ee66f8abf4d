from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, unquote

from platformdirs import PlatformDirs

from ..errors import StorageError
from .fs import atomic_write_text, ensure_dir, list_files, read_text_or_none

logger = logging.getLogger(__name__)

APP_NAME = "Ursa"
APP_AUTHOR = "Ursa"
_SUFFIX = ".json"


def default_storage_root() -> Path:
    """Platform-specific directory for save data.

    Linux: ~/.local/share/Ursa/saves
    macOS: ~/Library/Application Support/Ursa/saves
    Windows: %LOCALAPPDATA%\\Ursa\\Ursa\\saves
    """
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR)
    return Path(dirs.user_data_dir) / "saves"


class FileStorage:
    """Key-value storage with one file per key under a root directory.

    Key names are percent-encoded into file names so that separators such as
    ':' are safe on every platform. Writes are atomic; an interrupted write
    leaves the previous value in place.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else default_storage_root()

    def _path_for(self, key: str) -> Path:
        if not key:
            raise StorageError("Storage key must be a non-empty string")
        return self.root / (quote(key, safe="") + _SUFFIX)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return read_text_or_none(path)
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            ensure_dir(self.root)
            atomic_write_text(path, value)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e
        logger.debug("Wrote %d chars to %s", len(value), path)

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Could not remove {path}: {e}") from e

    def keys(self) -> List[str]:
        try:
            files = list_files(self.root, _SUFFIX)
        except OSError as e:
            raise StorageError(f"Could not list {self.root}: {e}") from e
        return [unquote(path.name[: -len(_SUFFIX)]) for path in files]

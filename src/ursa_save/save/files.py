"""Export the live state to a save file and import one back.

Imported files come from outside the game, so they are bounded before any
schema work: byte size, JSON container count and nesting depth.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..schema.save_game import migrate_save_game
from ..state.game_state import GameState
from ..state.store import StateTarget
from ..storage.fs import atomic_write_text
from .serializer import rehydrate_game_state, serialize_game_state

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_MAX_BYTES = 1024 * 1024
DEFAULT_IMPORT_MAX_JSON_NODES = 50_000
DEFAULT_IMPORT_MAX_JSON_DEPTH = 64

_TIMESTAMP_UNSAFE = re.compile(r"[:.]")


class SaveFileErrorCode(str, Enum):
    FILE_READ_FAILED = "file-read-failed"
    EMPTY_FILE = "empty-file"
    PAYLOAD_TOO_LARGE = "payload-too-large"
    INVALID_JSON = "invalid-json"
    UNSAFE_PAYLOAD = "unsafe-payload"
    INVALID_SAVE_FORMAT = "invalid-save-format"
    REHYDRATE_FAILED = "rehydrate-failed"
    WRITE_FAILED = "write-failed"


@dataclass(frozen=True)
class SaveFileResult:
    ok: bool
    file_name: Optional[str] = None
    path: Optional[Path] = None
    code: Optional[SaveFileErrorCode] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "fileName": self.file_name, "path": str(self.path) if self.path else None}
        return {"ok": False, "code": self.code.value if self.code else None, "message": self.message}


def _failure(code: SaveFileErrorCode, message: str) -> SaveFileResult:
    logger.warning("Save file rejected (%s): %s", code.value, message)
    return SaveFileResult(ok=False, code=code, message=message)


def _positive_int(value: Any, fallback: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return fallback
    return max(1, int(value))


@dataclass(frozen=True)
class ImportLimits:
    """Parse limits for imported save files. Non-numeric limits fall back to the defaults, others floor at 1."""

    max_bytes: int = DEFAULT_IMPORT_MAX_BYTES
    max_json_nodes: int = DEFAULT_IMPORT_MAX_JSON_NODES
    max_json_depth: int = DEFAULT_IMPORT_MAX_JSON_DEPTH

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_bytes", _positive_int(self.max_bytes, DEFAULT_IMPORT_MAX_BYTES))
        object.__setattr__(self, "max_json_nodes", _positive_int(self.max_json_nodes, DEFAULT_IMPORT_MAX_JSON_NODES))
        object.__setattr__(self, "max_json_depth", _positive_int(self.max_json_depth, DEFAULT_IMPORT_MAX_JSON_DEPTH))


def build_save_file_name(saved_at: str) -> str:
    """ursa-save-<timestamp>.json, with ':' and '.' in the timestamp replaced by '-'."""
    return f"ursa-save-{_TIMESTAMP_UNSAFE.sub('-', saved_at)}.json"


def exceeds_json_limits(root: Any, limits: ImportLimits) -> bool:
    """True unless root is an object whose container count and depth fit the limits.

    Containers are dicts and lists; the root sits at depth 0.
    """
    if not isinstance(root, dict):
        return True
    stack = [(root, 0)]
    nodes = 0
    while stack:
        value, depth = stack.pop()
        if not isinstance(value, (dict, list)):
            continue
        nodes += 1
        if nodes > limits.max_json_nodes or depth > limits.max_json_depth:
            return True
        children = value.values() if isinstance(value, dict) else value
        stack.extend((child, depth + 1) for child in children)
    return False


def export_save_file(state: GameState, directory: Union[str, Path]) -> SaveFileResult:
    """Write the live state as a pretty-printed save file into directory."""
    try:
        save = serialize_game_state(state)
    except ValueError as e:
        return _failure(SaveFileErrorCode.INVALID_SAVE_FORMAT, f"Live state could not be serialized: {e}")

    file_name = build_save_file_name(save.saved_at)
    path = Path(directory) / file_name
    try:
        atomic_write_text(path, json.dumps(save.to_wire(), indent=2))
    except OSError as e:
        return _failure(SaveFileErrorCode.WRITE_FAILED, f"Could not write save file {path}: {e}")

    logger.info("Exported save file %s", path)
    return SaveFileResult(ok=True, file_name=file_name, path=path)


def import_save_file(
    path: Union[str, Path],
    target: StateTarget,
    limits: Optional[ImportLimits] = None,
) -> SaveFileResult:
    """Validate the save file at path and apply it to target.

    Checks run in order: size, read, emptiness, JSON, parse limits, schema
    migration, rehydration. Target is only touched by the last step.
    """
    limits = limits or ImportLimits()
    path = Path(path)

    try:
        size = path.stat().st_size
    except OSError:
        return _failure(SaveFileErrorCode.FILE_READ_FAILED, "Could not read the selected save file.")
    if size > limits.max_bytes:
        return _failure(SaveFileErrorCode.PAYLOAD_TOO_LARGE, "Save file exceeds the configured size limit.")

    try:
        data = path.read_bytes()
    except OSError:
        return _failure(SaveFileErrorCode.FILE_READ_FAILED, "Could not read the selected save file.")

    if not data.strip():
        return _failure(SaveFileErrorCode.EMPTY_FILE, "Save file is empty.")
    # The file may have grown since stat().
    if len(data) > limits.max_bytes:
        return _failure(SaveFileErrorCode.PAYLOAD_TOO_LARGE, "Save file exceeds the configured size limit.")

    try:
        parsed = json.loads(data.decode("utf-8"))
    except RecursionError:
        return _failure(SaveFileErrorCode.UNSAFE_PAYLOAD, "Save file payload is unsafe or exceeds parsing limits.")
    except ValueError:
        return _failure(SaveFileErrorCode.INVALID_JSON, "Save file is not valid JSON.")

    if exceeds_json_limits(parsed, limits):
        return _failure(SaveFileErrorCode.UNSAFE_PAYLOAD, "Save file payload is unsafe or exceeds parsing limits.")

    save = migrate_save_game(parsed)
    if save is None:
        return _failure(SaveFileErrorCode.INVALID_SAVE_FORMAT, "Save file format is unsupported or invalid.")

    if not rehydrate_game_state(save, target):
        return _failure(
            SaveFileErrorCode.REHYDRATE_FAILED, "Save file could not be applied to the current game state."
        )

    logger.info("Imported save file %s (saved at %s)", path, save.saved_at)
    return SaveFileResult(ok=True, file_name=path.name, path=path)

"""Startup recovery for the quick-save payload.

At boot the game asks inspect_startup() whether the persisted quick save is
usable. The answer is one of four statuses; the player then chooses to restore
it or to reset (delete) it. Nothing here raises: every outcome is a value plus
a lifecycle signal.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..events import EventBus, SignalType
from ..schema.models import SaveGame
from ..schema.save_game import migrate_save_game
from ..storage.base import KeyValueStorage
from .keys import SaveKeys
from .serializer import rehydrate_game_state
from .slots import Clock, normalize_ms, wall_clock_ms

logger = logging.getLogger(__name__)


class RecoveryStatus(str, Enum):
    CLEAN = "clean"
    RECOVERABLE = "recoverable"
    CORRUPTED = "corrupted"
    STORAGE_UNAVAILABLE = "storage-unavailable"


class DiagnosticCode(str, Enum):
    STORAGE_UNAVAILABLE = "storage-unavailable"
    MISSING_SAVE = "missing-save"
    INVALID_JSON = "invalid-json"
    INVALID_SAVE_FORMAT = "invalid-save-format"
    REHYDRATE_FAILED = "rehydrate-failed"
    RESET_FAILED = "reset-failed"
    UNKNOWN = "unknown"


class RecoveryAction(str, Enum):
    RESTORE = "restore"
    RESET = "reset"


_MESSAGES = {
    DiagnosticCode.STORAGE_UNAVAILABLE: "Persistent storage is unavailable in this environment.",
    DiagnosticCode.MISSING_SAVE: "No persisted quick-save payload was found.",
    DiagnosticCode.INVALID_JSON: "Persisted quick-save is not valid JSON.",
    DiagnosticCode.INVALID_SAVE_FORMAT: "Persisted quick-save payload is invalid or unsupported.",
    DiagnosticCode.REHYDRATE_FAILED: "Persisted quick-save could not be applied to runtime state.",
    DiagnosticCode.RESET_FAILED: "Persisted quick-save reset failed.",
    DiagnosticCode.UNKNOWN: "Persistent storage read failed unexpectedly.",
}


@dataclass(frozen=True)
class RecoveryDiagnostic:
    code: DiagnosticCode
    message: str
    at_ms: int
    storage_key: str
    payload_bytes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "atMs": self.at_ms,
            "storageKey": self.storage_key,
        }
        if self.payload_bytes is not None:
            data["payloadBytes"] = self.payload_bytes
        return data


@dataclass(frozen=True)
class RecoverySnapshot:
    """What a restore would bring back, read without touching the live state."""

    version: int
    saved_at: str
    storage_key: str
    payload_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "savedAt": self.saved_at,
            "storageKey": self.storage_key,
            "payloadBytes": self.payload_bytes,
        }


@dataclass(frozen=True)
class StartupInspection:
    status: RecoveryStatus
    diagnostics: List[RecoveryDiagnostic] = field(default_factory=list)
    snapshot: Optional[RecoverySnapshot] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "diagnostics": [diagnostic.to_dict() for diagnostic in self.diagnostics],
            "snapshot": self.snapshot.to_dict() if self.snapshot is not None else None,
        }


@dataclass(frozen=True)
class RecoveryActionResult:
    ok: bool
    action: RecoveryAction
    code: Optional[DiagnosticCode] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok, "action": self.action.value}
        if not self.ok:
            data["code"] = self.code.value if self.code is not None else None
            data["message"] = self.message
        return data


def payload_size(raw: str) -> int:
    """Size of a stored payload in bytes, UTF-8 encoded."""
    return len(raw.encode("utf-8"))


class SaveRecoveryService:
    def __init__(
        self,
        storage: Optional[KeyValueStorage],
        store: Any = None,
        *,
        storage_key: Optional[str] = None,
        bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
        migrate: Callable[[Any], Optional[SaveGame]] = migrate_save_game,
        rehydrate: Optional[Callable[[SaveGame], bool]] = None,
    ) -> None:
        if store is None and rehydrate is None:
            raise ValueError("SaveRecoveryService needs a state store or a rehydrate callable")
        self._storage = storage
        self._store = store
        self.storage_key = storage_key or SaveKeys().quick
        self._bus = bus
        self._clock = clock or wall_clock_ms
        self._migrate = migrate
        self._rehydrate = rehydrate or (lambda save: rehydrate_game_state(save, self._store))
        self._last_result: Optional[StartupInspection] = None
        self._last_diagnostics: List[RecoveryDiagnostic] = []

    @property
    def last_startup_result(self) -> Optional[StartupInspection]:
        return self._last_result

    @property
    def last_diagnostics(self) -> List[RecoveryDiagnostic]:
        return list(self._last_diagnostics)

    def _publish(self, name: str, payload: Dict[str, Any]) -> None:
        if self._bus is not None:
            self._bus.publish(name, payload)

    def _diagnostic(self, code: DiagnosticCode, payload_bytes: Optional[int] = None) -> RecoveryDiagnostic:
        return RecoveryDiagnostic(
            code=code,
            message=_MESSAGES[code],
            at_ms=normalize_ms(self._clock()),
            storage_key=self.storage_key,
            payload_bytes=payload_bytes,
        )

    def _report_failure(self, diagnostic: RecoveryDiagnostic) -> None:
        logger.warning("Save recovery: %s (%s)", diagnostic.message, diagnostic.code.value)
        self._publish(SignalType.RECOVERY_FAILED, diagnostic.to_dict())

    def _finish(self, status: RecoveryStatus, diagnostics: List[RecoveryDiagnostic],
                snapshot: Optional[RecoverySnapshot] = None) -> StartupInspection:
        result = StartupInspection(status=status, diagnostics=list(diagnostics), snapshot=snapshot)
        self._last_result = result
        self._last_diagnostics = list(diagnostics)
        self._publish(SignalType.RECOVERY_STARTUP_CHECKED, result.to_dict())
        if status in (RecoveryStatus.CORRUPTED, RecoveryStatus.STORAGE_UNAVAILABLE):
            for diagnostic in diagnostics:
                self._report_failure(diagnostic)
        else:
            logger.info("Startup save check: %s", status.value)
        return result

    def inspect_startup(self) -> StartupInspection:
        """Classify the persisted quick save as clean, recoverable, corrupted or storage-unavailable."""
        if self._storage is None:
            return self._finish(
                RecoveryStatus.STORAGE_UNAVAILABLE, [self._diagnostic(DiagnosticCode.STORAGE_UNAVAILABLE)]
            )

        try:
            raw = self._storage.get(self.storage_key)
        except Exception:  # noqa: BLE001
            logger.error("Reading %s failed", self.storage_key, exc_info=True)
            return self._finish(RecoveryStatus.CORRUPTED, [self._diagnostic(DiagnosticCode.UNKNOWN)])

        if raw is None or not raw.strip():
            return self._finish(RecoveryStatus.CLEAN, [self._diagnostic(DiagnosticCode.MISSING_SAVE)])

        size = payload_size(raw)
        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError):
            return self._finish(RecoveryStatus.CORRUPTED, [self._diagnostic(DiagnosticCode.INVALID_JSON, size)])

        migrated = self._migrate(parsed)
        if migrated is None:
            return self._finish(
                RecoveryStatus.CORRUPTED, [self._diagnostic(DiagnosticCode.INVALID_SAVE_FORMAT, size)]
            )

        snapshot = RecoverySnapshot(
            version=migrated.version,
            saved_at=migrated.saved_at,
            storage_key=self.storage_key,
            payload_bytes=size,
        )
        return self._finish(RecoveryStatus.RECOVERABLE, [], snapshot)

    def _restore_failed(self, code: DiagnosticCode, payload_bytes: Optional[int] = None) -> RecoveryActionResult:
        diagnostic = self._diagnostic(code, payload_bytes)
        self._last_diagnostics = [diagnostic]
        self._report_failure(diagnostic)
        return RecoveryActionResult(ok=False, action=RecoveryAction.RESTORE, code=code, message=diagnostic.message)

    def restore_persisted(self) -> RecoveryActionResult:
        """Apply the persisted quick save to the live state, if it is recoverable."""
        startup = self.inspect_startup()
        if startup.status != RecoveryStatus.RECOVERABLE:
            first = startup.diagnostics[0] if startup.diagnostics else None
            return RecoveryActionResult(
                ok=False,
                action=RecoveryAction.RESTORE,
                code=first.code if first else DiagnosticCode.UNKNOWN,
                message=first.message if first else "Persisted save recovery is unavailable.",
            )

        # Storage may change between the inspection and this read.
        try:
            raw = self._storage.get(self.storage_key)
        except Exception:  # noqa: BLE001
            logger.error("Reading %s failed", self.storage_key, exc_info=True)
            return self._restore_failed(DiagnosticCode.UNKNOWN)
        if raw is None or not raw.strip():
            return RecoveryActionResult(
                ok=False,
                action=RecoveryAction.RESTORE,
                code=DiagnosticCode.MISSING_SAVE,
                message=_MESSAGES[DiagnosticCode.MISSING_SAVE],
            )

        size = payload_size(raw)
        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError):
            return self._restore_failed(DiagnosticCode.INVALID_JSON, size)

        migrated = self._migrate(parsed)
        if migrated is None:
            return self._restore_failed(DiagnosticCode.INVALID_SAVE_FORMAT, size)

        if not self._rehydrate(migrated):
            return self._restore_failed(DiagnosticCode.REHYDRATE_FAILED, size)

        snapshot = RecoverySnapshot(
            version=migrated.version,
            saved_at=migrated.saved_at,
            storage_key=self.storage_key,
            payload_bytes=size,
        )
        logger.info("Restored quick save from %s", migrated.saved_at)
        self._publish(SignalType.RECOVERY_RESTORE_APPLIED, snapshot.to_dict())
        return RecoveryActionResult(ok=True, action=RecoveryAction.RESTORE)

    def reset_persisted(self) -> RecoveryActionResult:
        """Delete the persisted quick save."""
        if self._storage is None:
            return RecoveryActionResult(
                ok=False,
                action=RecoveryAction.RESET,
                code=DiagnosticCode.STORAGE_UNAVAILABLE,
                message=_MESSAGES[DiagnosticCode.STORAGE_UNAVAILABLE],
            )

        try:
            self._storage.remove(self.storage_key)
        except Exception:  # noqa: BLE001
            logger.error("Removing %s failed", self.storage_key, exc_info=True)
            diagnostic = self._diagnostic(DiagnosticCode.RESET_FAILED)
            self._last_diagnostics = [diagnostic]
            self._report_failure(diagnostic)
            return RecoveryActionResult(
                ok=False, action=RecoveryAction.RESET, code=diagnostic.code, message=diagnostic.message
            )

        logger.info("Reset persisted quick save %s", self.storage_key)
        self._publish(
            SignalType.RECOVERY_RESET_APPLIED,
            {"storageKey": self.storage_key, "atMs": normalize_ms(self._clock())},
        )
        return RecoveryActionResult(ok=True, action=RecoveryAction.RESET)

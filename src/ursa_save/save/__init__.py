"""Save services: slots, startup recovery, quick save, save files."""

from .files import ImportLimits, SaveFileErrorCode, SaveFileResult, build_save_file_name, export_save_file, import_save_file
from .keys import SaveKeys, is_valid_slot
from .quick import QuickSaveScheduler, QuickSaveService
from .recovery import (
    DiagnosticCode,
    RecoveryAction,
    RecoveryActionResult,
    RecoveryDiagnostic,
    RecoverySnapshot,
    RecoveryStatus,
    SaveRecoveryService,
    StartupInspection,
)
from .results import SlotErrorCode, SlotResult
from .sanitize import SanitizeResult, SanitizeScope, sanitize_persisted_state
from .serializer import build_game_state, rehydrate_game_state, serialize_game_state
from .slots import SaveSlotService

__all__ = [
    "DiagnosticCode",
    "ImportLimits",
    "QuickSaveScheduler",
    "QuickSaveService",
    "RecoveryAction",
    "RecoveryActionResult",
    "RecoveryDiagnostic",
    "RecoverySnapshot",
    "RecoveryStatus",
    "SanitizeResult",
    "SanitizeScope",
    "SaveFileErrorCode",
    "SaveFileResult",
    "SaveKeys",
    "SaveRecoveryService",
    "SaveSlotService",
    "SlotErrorCode",
    "SlotResult",
    "build_game_state",
    "build_save_file_name",
    "export_save_file",
    "import_save_file",
    "is_valid_slot",
    "rehydrate_game_state",
    "sanitize_persisted_state",
    "serialize_game_state",
]

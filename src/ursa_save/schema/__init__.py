"""Versioned save schema and its migration engine.

- Pydantic models for every historical save version plus slot metadata
- A generic, stateless engine chaining single-step upgraders
- The save-game pipeline built from both
"""

from .migration import MigrationFailureCode, MigrationResult, VersionedSchemaMigration, read_version
from .models import (
    SAVE_GAME_LEGACY_VERSION,
    SAVE_GAME_VERSION,
    SLOT_ID_PATTERN,
    RollbackRecord,
    RollbackSnapshot,
    SaveGame,
    SaveGameState,
    SaveGameV0,
    SaveSlotMetadata,
)
from .save_game import (
    migrate_save_game,
    migrate_v0_to_v1,
    parse_save_game,
    preflight_save_game_migration,
    save_game_to_dict,
    validate_current,
)

__all__ = [
    "SAVE_GAME_LEGACY_VERSION",
    "SAVE_GAME_VERSION",
    "SLOT_ID_PATTERN",
    "MigrationFailureCode",
    "MigrationResult",
    "RollbackRecord",
    "RollbackSnapshot",
    "SaveGame",
    "SaveGameState",
    "SaveGameV0",
    "SaveSlotMetadata",
    "VersionedSchemaMigration",
    "migrate_save_game",
    "migrate_v0_to_v1",
    "parse_save_game",
    "preflight_save_game_migration",
    "read_version",
    "save_game_to_dict",
    "validate_current",
]

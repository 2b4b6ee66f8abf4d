from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..errors import MigrationError
from .migration import MigrationResult, VersionedSchemaMigration
from .models import SAVE_GAME_LEGACY_VERSION, SAVE_GAME_VERSION, SaveGame, SaveGameV0

logger = logging.getLogger(__name__)


def _as_payload(candidate: Any) -> Any:
    # Already-built saves go back through the pipeline as plain data.
    if isinstance(candidate, SaveGame):
        return candidate.to_wire()
    return candidate


def _is_valid_v0(payload: Any) -> bool:
    try:
        SaveGameV0.model_validate(payload)
    except ValidationError:
        return False
    return True


def migrate_v0_to_v1(payload: Any) -> Dict[str, Any]:
    """Upgrade a version 0 save to version 1.

    Defaults for fields introduced in version 1:
      - camera.clampToWorld: True
      - camera.followTargetId: the player id in "follow-player" mode, else None
      - worldBoundsEnabled: False
      - worldBoundsIds: []
    """
    try:
        legacy = SaveGameV0.model_validate(payload)
    except ValidationError as e:
        raise MigrationError(f"Invalid v0 save payload: {e.error_count()} error(s)") from e

    state = legacy.state.to_wire()
    camera = dict(state["camera"])
    camera["clampToWorld"] = True
    camera["followTargetId"] = legacy.state.player_id if legacy.state.camera.mode == "follow-player" else None
    state["camera"] = camera
    state["worldBoundsEnabled"] = False
    state["worldBoundsIds"] = []
    return {
        "version": SAVE_GAME_VERSION,
        "savedAt": legacy.saved_at,
        "state": state,
    }


_PIPELINE: VersionedSchemaMigration[SaveGame] = VersionedSchemaMigration(
    current_version=SAVE_GAME_VERSION,
    parse_current=SaveGame.model_validate,
    migrations={SAVE_GAME_LEGACY_VERSION: migrate_v0_to_v1},
    legacy_validators={SAVE_GAME_LEGACY_VERSION: _is_valid_v0},
)


def validate_current(candidate: Any) -> bool:
    """True if candidate is a structurally valid save at the current version."""
    return parse_save_game(candidate) is not None


def parse_save_game(candidate: Any) -> Optional[SaveGame]:
    """Validate a current-version payload without migrating it."""
    try:
        return SaveGame.model_validate(_as_payload(candidate))
    except ValidationError as e:
        logger.debug("Save payload rejected: %s", e)
        return None


def migrate_save_game(candidate: Any) -> Optional[SaveGame]:
    """Bring any historically valid save payload to the current version, or return None."""
    result = _PIPELINE.migrate(_as_payload(candidate))
    if not result.ok:
        logger.info("Save payload not migratable (%s): %s", result.code.value if result.code else None, result.message)
        return None
    return result.value


def preflight_save_game_migration(candidate: Any) -> MigrationResult[SaveGame]:
    """Report whether candidate can be migrated, without migrating it."""
    return _PIPELINE.preflight(_as_payload(candidate))


def save_game_to_dict(save: SaveGame) -> Dict[str, Any]:
    return save.to_wire()

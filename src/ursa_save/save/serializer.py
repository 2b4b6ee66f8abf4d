"""Translate between the live GameState and the current save schema.

Both directions copy every nested list and record, so a live state never
aliases a save payload and vice versa.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..schema.models import (
    SAVE_GAME_VERSION,
    SaveAnimation,
    SaveCollider,
    SaveEntity,
    SaveGame,
    SavePhysicsBody,
)
from ..schema.save_game import migrate_save_game
from ..state.game_state import (
    Animation,
    Camera,
    Collider,
    Entity,
    GameState,
    PhysicsBody,
    Position,
    Size,
    Vector2,
)
from ..state.store import StateTarget

logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _put_optional(data: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        data[key] = value


def _entity_to_wire(entity_id: str, entity: Entity) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": entity_id,
        "type": entity.type,
        "name": entity.name,
        "spriteImageSheet": entity.sprite_image_sheet,
        "spriteSize": entity.sprite_size,
        "spriteSheetTileWidth": entity.sprite_sheet_tile_width,
        "spriteSheetTileHeight": entity.sprite_sheet_tile_height,
        "characterSpriteTiles": [list(frame) for frame in entity.character_sprite_tiles],
        "scaler": entity.scaler,
        "position": {"x": entity.position.x, "y": entity.position.y},
        "currentAnimation": entity.current_animation,
        "animations": [
            {
                "spriteSheet": animation.sprite_sheet,
                "name": animation.name,
                "frames": [list(frame) for frame in animation.frames],
            }
            for animation in entity.animations
        ],
    }
    _put_optional(data["position"], "z", entity.position.z)
    _put_optional(data, "fps", entity.fps)
    if entity.collider is not None:
        collider = entity.collider
        collider_data: Dict[str, Any] = {
            "type": "rectangle",
            "size": {"width": collider.size.width, "height": collider.size.height},
            "offset": {"x": collider.offset.x, "y": collider.offset.y},
            "collisionResponse": collider.collision_response,
            "layer": collider.layer,
            "collidesWith": collider.collides_with,
        }
        _put_optional(collider_data, "debugDraw", collider.debug_draw)
        data["collider"] = collider_data
    if entity.physics_body is not None:
        body = entity.physics_body
        body_data: Dict[str, Any] = {
            "enabled": body.enabled,
            "affectedByGravity": body.affected_by_gravity,
            "gravityScale": body.gravity_scale,
            "velocity": {"x": body.velocity.x, "y": body.velocity.y},
            "dragX": body.drag_x,
        }
        _put_optional(body_data, "maxVelocityY", body.max_velocity_y)
        data["physicsBody"] = body_data
    return data


def game_state_to_wire(state: GameState) -> Dict[str, Any]:
    """Plain-data snapshot of a live state in the current schema's state shape."""
    camera = state.camera
    return {
        "entitiesById": {
            entity_id: _entity_to_wire(entity_id, entity) for entity_id, entity in state.entities_by_id.items()
        },
        "playerId": state.player_id,
        "worldSize": {"width": state.world_size.width, "height": state.world_size.height},
        "camera": {
            "x": camera.x,
            "y": camera.y,
            "viewport": {"width": camera.viewport.width, "height": camera.viewport.height},
            "mode": camera.mode,
            "clampToWorld": camera.clamp_to_world,
            "followTargetId": camera.follow_target_id,
        },
        "worldBoundsEnabled": state.world_bounds_enabled,
        "worldBoundsIds": list(state.world_bounds_ids),
    }


def serialize_game_state(state: GameState, now: Optional[datetime] = None) -> SaveGame:
    """Snapshot a live state as a current-version save stamped with the serialization time.

    Raises pydantic.ValidationError if the live state breaks the save schema.
    """
    return SaveGame.model_validate(
        {
            "version": SAVE_GAME_VERSION,
            "savedAt": utc_timestamp(now),
            "state": game_state_to_wire(state),
        }
    )


def _collider_from_save(saved: SaveCollider) -> Collider:
    return Collider(
        size=Size(width=saved.size.width, height=saved.size.height),
        offset=Vector2(x=saved.offset.x, y=saved.offset.y),
        collision_response=saved.collision_response,
        layer=saved.layer,
        collides_with=saved.collides_with,
        debug_draw=saved.debug_draw,
    )


def _physics_from_save(saved: SavePhysicsBody) -> PhysicsBody:
    return PhysicsBody(
        enabled=saved.enabled,
        affected_by_gravity=saved.affected_by_gravity,
        gravity_scale=saved.gravity_scale,
        velocity=Vector2(x=saved.velocity.x, y=saved.velocity.y),
        drag_x=saved.drag_x,
        max_velocity_y=saved.max_velocity_y,
    )


def _animation_from_save(saved: SaveAnimation) -> Animation:
    return Animation(
        sprite_sheet=saved.sprite_sheet,
        name=saved.name,
        frames=[list(frame) for frame in saved.frames],
    )


def _entity_from_save(saved: SaveEntity) -> Entity:
    return Entity(
        id=saved.id,
        type=saved.type,
        name=saved.name,
        sprite_image_sheet=saved.sprite_image_sheet,
        sprite_size=saved.sprite_size,
        sprite_sheet_tile_width=saved.sprite_sheet_tile_width,
        sprite_sheet_tile_height=saved.sprite_sheet_tile_height,
        character_sprite_tiles=[list(frame) for frame in saved.character_sprite_tiles],
        scaler=saved.scaler,
        position=Position(
            x=saved.position.x,
            y=saved.position.y,
            z=saved.position.z if saved.position.z is not None else 0,
        ),
        current_animation=saved.current_animation,
        animations=[_animation_from_save(animation) for animation in saved.animations],
        fps=saved.fps,
        collider=_collider_from_save(saved.collider) if saved.collider is not None else None,
        physics_body=_physics_from_save(saved.physics_body) if saved.physics_body is not None else None,
    )


def build_game_state(save: SaveGame) -> GameState:
    """Build a complete, independent live state from a current-version save."""
    state = save.state
    camera = state.camera
    return GameState(
        entities_by_id={entity_id: _entity_from_save(entity) for entity_id, entity in state.entities_by_id.items()},
        player_id=state.player_id,
        world_size=Size(width=state.world_size.width, height=state.world_size.height),
        camera=Camera(
            x=camera.x,
            y=camera.y,
            viewport=Size(width=camera.viewport.width, height=camera.viewport.height),
            mode=camera.mode,
            clamp_to_world=camera.clamp_to_world,
            follow_target_id=camera.follow_target_id,
        ),
        world_bounds_enabled=state.world_bounds_enabled,
        world_bounds_ids=list(state.world_bounds_ids),
    )


def rehydrate_game_state(candidate: Any, target: StateTarget) -> bool:
    """Replace target's state with the one described by candidate.

    All-or-nothing: the candidate is migrated and the replacement state fully
    built before target.set_state is called, exactly once. Returns False, with
    target untouched, when migration fails, and False when target rejects the
    update.
    """
    save = migrate_save_game(candidate)
    if save is None:
        return False

    built = build_game_state(save)
    try:
        target.set_state(lambda _prev: built)
    except Exception:  # noqa: BLE001 - live state rejected the update
        logger.exception("Live state rejected rehydrated save from %s", save.saved_at)
        return False
    logger.debug("Rehydrated live state from save %s", save.saved_at)
    return True

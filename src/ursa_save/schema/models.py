from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, model_validator
from pydantic.alias_generators import to_camel

# Increment when making breaking schema changes, and register an upgrader.
SAVE_GAME_VERSION = 1
SAVE_GAME_LEGACY_VERSION = 0

SLOT_ID_PATTERN = r"^[a-zA-Z0-9_-]{1,32}$"

# Real numbers only: bools and numeric strings are rejected, inf/nan too.
FiniteNumber = Annotated[float, Field(strict=True, allow_inf_nan=False)]
PositiveNumber = Annotated[float, Field(strict=True, allow_inf_nan=False, gt=0)]
TileFrame = Tuple[FiniteNumber, FiniteNumber]


class WireModel(BaseModel):
    """Base for every persisted record: snake_case in Python, camelCase on the wire.

    Unknown keys are ignored and dropped, so a validated record only ever
    carries fields of the schema it was validated against.
    """

    model_config = ConfigDict(alias_generator=to_camel, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _reject_explicit_nulls(cls, data: Any) -> Any:
        # Fields defaulting to None may be omitted, but never sent as null.
        if isinstance(data, dict):
            for name, info in cls.model_fields.items():
                if info.is_required() or info.default is not None:
                    continue
                for key in {name, info.alias or to_camel(name)}:
                    if key in data and data[key] is None:
                        raise ValueError(f"{key} may be omitted but must not be null")
        return data

    def to_wire(self) -> Dict[str, Any]:
        """Plain JSON-ready data with wire names. Optional fields never given stay absent."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class SavePosition(WireModel):
    x: FiniteNumber
    y: FiniteNumber
    z: Optional[FiniteNumber] = None


class SaveSize(WireModel):
    width: FiniteNumber
    height: FiniteNumber


class SaveWorldSize(WireModel):
    width: PositiveNumber
    height: PositiveNumber


class SaveVector(WireModel):
    x: FiniteNumber
    y: FiniteNumber


class SaveAnimation(WireModel):
    sprite_sheet: StrictStr
    name: StrictStr
    frames: List[TileFrame]


class SaveCollider(WireModel):
    type: Literal["rectangle"]
    size: SaveSize
    offset: SaveVector
    collision_response: Literal["block", "overlap"]
    layer: FiniteNumber
    collides_with: FiniteNumber
    debug_draw: Optional[StrictBool] = None


class SavePhysicsBody(WireModel):
    enabled: StrictBool
    affected_by_gravity: StrictBool
    gravity_scale: FiniteNumber
    velocity: SaveVector
    drag_x: FiniteNumber
    max_velocity_y: Optional[FiniteNumber] = None


class SaveEntity(WireModel):
    id: StrictStr
    type: Literal["player", "enemy", "object"]
    name: StrictStr
    sprite_image_sheet: StrictStr
    sprite_size: FiniteNumber
    sprite_sheet_tile_width: FiniteNumber
    sprite_sheet_tile_height: FiniteNumber
    character_sprite_tiles: List[TileFrame]
    scaler: FiniteNumber
    position: SavePosition
    fps: Optional[FiniteNumber] = None
    current_animation: StrictStr
    animations: List[SaveAnimation]
    collider: Optional[SaveCollider] = None
    physics_body: Optional[SavePhysicsBody] = None


class SaveCameraV0(WireModel):
    x: FiniteNumber
    y: FiniteNumber
    viewport: SaveSize
    mode: Literal["follow-player", "manual"]


class SaveCamera(SaveCameraV0):
    clamp_to_world: StrictBool
    follow_target_id: Optional[StrictStr]


class _SaveStateBase(WireModel):
    entities_by_id: Dict[StrictStr, SaveEntity]
    player_id: StrictStr
    world_size: SaveWorldSize

    @model_validator(mode="after")
    def _check_entity_references(self) -> "_SaveStateBase":
        if any(not entity_id for entity_id in self.entities_by_id):
            raise ValueError("entity ids must be non-empty strings")
        if self.player_id not in self.entities_by_id:
            raise ValueError(f"playerId {self.player_id!r} is not a known entity")
        return self


class SaveGameStateV0(_SaveStateBase):
    camera: SaveCameraV0


class SaveGameState(_SaveStateBase):
    camera: SaveCamera
    world_bounds_enabled: StrictBool
    world_bounds_ids: List[StrictStr]

    @model_validator(mode="after")
    def _check_follow_target(self) -> "SaveGameState":
        target = self.camera.follow_target_id
        if target is not None and target not in self.entities_by_id:
            raise ValueError(f"camera.followTargetId {target!r} is not a known entity")
        return self


class SaveGameV0(WireModel):
    """Legacy save: camera without clamp/follow target, no world bounds."""

    version: StrictInt
    saved_at: StrictStr
    state: SaveGameStateV0

    @model_validator(mode="after")
    def _check_version(self) -> "SaveGameV0":
        if self.version != SAVE_GAME_LEGACY_VERSION:
            raise ValueError(f"expected version {SAVE_GAME_LEGACY_VERSION}, got {self.version}")
        return self


class SaveGame(WireModel):
    """Versioned save envelope: {version, savedAt, state}."""

    version: StrictInt
    saved_at: StrictStr
    state: SaveGameState

    @model_validator(mode="after")
    def _check_version(self) -> "SaveGame":
        if self.version != SAVE_GAME_VERSION:
            raise ValueError(f"expected version {SAVE_GAME_VERSION}, got {self.version}")
        return self


class SaveSlotMetadata(WireModel):
    """One row of the slot index. Listing slots never reads save bodies."""

    slot: Annotated[str, Field(strict=True, pattern=SLOT_ID_PATTERN)]
    timestamp: StrictStr
    playtime: Annotated[int, Field(strict=True, ge=0)]
    version: StrictInt


class RollbackSnapshot(SaveSlotMetadata):
    """Listing view of an archived save body."""

    id: StrictStr
    created_at_ms: Annotated[int, Field(strict=True, ge=0)]


class RollbackRecord(RollbackSnapshot):
    """An archived save body, captured right before its slot was overwritten."""

    payload: Dict[str, Any]

    def snapshot(self) -> RollbackSnapshot:
        return RollbackSnapshot.model_validate(self.model_dump(by_alias=True, exclude={"payload"}))

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

EntityType = Literal["player", "enemy", "object"]
CameraMode = Literal["follow-player", "manual"]
CollisionResponse = Literal["block", "overlap"]

TileFrame = List[float]


@dataclass
class Vector2:
    x: float
    y: float


@dataclass
class Position:
    x: float
    y: float
    z: float = 0


@dataclass
class Size:
    width: float
    height: float


@dataclass
class Animation:
    """Named animation; frames are [column, row] tile coordinates in sprite_sheet."""

    sprite_sheet: str
    name: str
    frames: List[TileFrame] = field(default_factory=list)


@dataclass
class Collider:
    size: Size
    offset: Vector2
    collision_response: CollisionResponse
    layer: int
    collides_with: int
    debug_draw: Optional[bool] = None
    type: Literal["rectangle"] = "rectangle"


@dataclass
class PhysicsBody:
    enabled: bool
    affected_by_gravity: bool
    gravity_scale: float
    velocity: Vector2
    drag_x: float
    max_velocity_y: Optional[float] = None


@dataclass
class Entity:
    """A live world entity as held by the game-state container."""

    id: str
    type: EntityType
    name: str
    sprite_image_sheet: str
    sprite_size: float
    sprite_sheet_tile_width: float
    sprite_sheet_tile_height: float
    character_sprite_tiles: List[TileFrame]
    scaler: float
    position: Position
    current_animation: str
    animations: List[Animation] = field(default_factory=list)
    fps: Optional[float] = None
    collider: Optional[Collider] = None
    physics_body: Optional[PhysicsBody] = None


@dataclass
class Camera:
    x: float
    y: float
    viewport: Size
    mode: CameraMode = "follow-player"
    clamp_to_world: bool = True
    follow_target_id: Optional[str] = None


@dataclass
class GameState:
    """Full mutable state of a running game.

    Gameplay services read and replace this through a GameStore; the save
    subsystem snapshots it and rebuilds it, nothing else.
    """

    entities_by_id: Dict[str, Entity]
    player_id: str
    world_size: Size
    camera: Camera
    world_bounds_enabled: bool = False
    world_bounds_ids: List[str] = field(default_factory=list)

    @property
    def player(self) -> Entity:
        return self.entities_by_id[self.player_id]

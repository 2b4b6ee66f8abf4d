from .game_state import (
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
from .store import GameStore, StateSource, StateTarget

__all__ = [
    "Animation",
    "Camera",
    "Collider",
    "Entity",
    "GameState",
    "GameStore",
    "PhysicsBody",
    "Position",
    "Size",
    "StateSource",
    "StateTarget",
    "Vector2",
]

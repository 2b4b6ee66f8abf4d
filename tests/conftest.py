import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from ursa_save.events import Event, EventBus, SignalType  # noqa: E402
from ursa_save.state import (  # noqa: E402
    Animation,
    Camera,
    Collider,
    Entity,
    GameState,
    GameStore,
    PhysicsBody,
    Position,
    Size,
    Vector2,
)
from ursa_save.storage import MemoryStorage  # noqa: E402


def build_state(player_x: float = 10, player_y: float = 20) -> GameState:
    player = Entity(
        id="player-1",
        type="player",
        name="Ursa",
        sprite_image_sheet="sheets/player.png",
        sprite_size=32,
        sprite_sheet_tile_width=8,
        sprite_sheet_tile_height=4,
        character_sprite_tiles=[[0, 0], [1, 0]],
        scaler=2,
        position=Position(x=player_x, y=player_y, z=1),
        current_animation="idle",
        animations=[Animation(sprite_sheet="sheets/player.png", name="idle", frames=[[0, 0], [1, 0]])],
        fps=12,
        collider=Collider(
            size=Size(width=16, height=30),
            offset=Vector2(x=8, y=2),
            collision_response="block",
            layer=1,
            collides_with=6,
        ),
        physics_body=PhysicsBody(
            enabled=True,
            affected_by_gravity=True,
            gravity_scale=1,
            velocity=Vector2(x=0, y=0),
            drag_x=0.8,
            max_velocity_y=600,
        ),
    )
    crate = Entity(
        id="crate-1",
        type="object",
        name="Crate",
        sprite_image_sheet="sheets/props.png",
        sprite_size=16,
        sprite_sheet_tile_width=4,
        sprite_sheet_tile_height=4,
        character_sprite_tiles=[[2, 3]],
        scaler=1,
        position=Position(x=64, y=48),
        current_animation="static",
    )
    return GameState(
        entities_by_id={player.id: player, crate.id: crate},
        player_id=player.id,
        world_size=Size(width=1280, height=720),
        camera=Camera(
            x=0,
            y=0,
            viewport=Size(width=640, height=360),
            mode="follow-player",
            clamp_to_world=True,
            follow_target_id=player.id,
        ),
        world_bounds_enabled=True,
        world_bounds_ids=["crate-1"],
    )


def build_v0_payload() -> Dict[str, Any]:
    return {
        "version": 0,
        "savedAt": "2024-01-01T00:00:00.000Z",
        "state": {
            "entitiesById": {
                "p1": {
                    "id": "p1",
                    "type": "player",
                    "name": "Ursa",
                    "spriteImageSheet": "sheets/player.png",
                    "spriteSize": 32,
                    "spriteSheetTileWidth": 8,
                    "spriteSheetTileHeight": 4,
                    "characterSpriteTiles": [[0, 0]],
                    "scaler": 2,
                    "position": {"x": 5, "y": 6},
                    "currentAnimation": "idle",
                    "animations": [],
                }
            },
            "playerId": "p1",
            "worldSize": {"width": 800, "height": 600},
            "camera": {"x": 0, "y": 0, "viewport": {"width": 400, "height": 300}, "mode": "follow-player"},
        },
    }


def build_deep_v0_body(depth: int = 600) -> str:
    """JSON text of a v0 save with an unknown key nested too deeply to copy."""
    body = json.dumps(build_v0_payload())
    nested = '{"a": ' * depth + "{}" + "}" * depth
    return body[:-1] + ', "extra": ' + nested + "}"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RaisingStorage(MemoryStorage):
    """MemoryStorage whose calls fail for chosen operations or keys."""

    def __init__(self, fail_get=(), fail_set=(), fail_remove=(), initial=None) -> None:
        super().__init__(initial)
        self.fail_get = set(fail_get)
        self.fail_set = set(fail_set)
        self.fail_remove = set(fail_remove)

    @staticmethod
    def _hit(rules, key: str) -> bool:
        return "*" in rules or key in rules

    def get(self, key):
        if self._hit(self.fail_get, key):
            raise OSError(f"read failed: {key}")
        return super().get(key)

    def set(self, key, value):
        if self._hit(self.fail_set, key):
            raise OSError(f"write failed: {key}")
        super().set(key, value)

    def remove(self, key):
        if self._hit(self.fail_remove, key):
            raise OSError(f"remove failed: {key}")
        super().remove(key)


class CountingStore(GameStore):
    """GameStore that counts set_state calls."""

    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.set_calls = 0

    def set_state(self, updater):
        self.set_calls += 1
        super().set_state(updater)


class RejectingStore(CountingStore):
    def set_state(self, updater):
        self.set_calls += 1
        raise RuntimeError("state container is locked")


@pytest.fixture
def make_state():
    return build_state


@pytest.fixture
def v0_payload() -> Dict[str, Any]:
    return build_v0_payload()


@pytest.fixture
def deep_v0_body() -> str:
    return build_deep_v0_body()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store() -> CountingStore:
    return CountingStore(build_state())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def signals(bus: EventBus) -> List[Event]:
    received: List[Event] = []
    bus.subscribe_many(SignalType.all(), received.append)
    return received


@pytest.fixture
def raising_storage():
    """Factory: raising_storage(fail_get=..., fail_set=..., fail_remove=..., initial=...)."""
    return RaisingStorage


@pytest.fixture
def rejecting_store() -> RejectingStore:
    return RejectingStore(build_state())

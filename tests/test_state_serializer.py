from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from ursa_save.save.serializer import (
    build_game_state,
    game_state_to_wire,
    rehydrate_game_state,
    serialize_game_state,
    utc_timestamp,
)
from ursa_save.schema import SAVE_GAME_VERSION


def test_utc_timestamp_has_millisecond_precision():
    moment = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
    assert utc_timestamp(moment) == "2024-05-06T07:08:09.123Z"


def test_serialize_stamps_version_and_time(make_state):
    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    save = serialize_game_state(make_state(), now=moment)

    assert save.version == SAVE_GAME_VERSION
    assert save.saved_at == "2024-01-02T03:04:05.000Z"


def test_serialize_omits_absent_optionals_but_keeps_follow_target(make_state):
    state = make_state()
    state.camera.follow_target_id = None

    wire = serialize_game_state(state).to_wire()

    crate = wire["state"]["entitiesById"]["crate-1"]
    assert "collider" not in crate
    assert "physicsBody" not in crate
    assert "fps" not in crate
    assert "debugDraw" not in wire["state"]["entitiesById"]["player-1"]["collider"]
    assert wire["state"]["camera"]["followTargetId"] is None


def test_round_trip_restores_equal_state(make_state, store):
    original = make_state()
    save = serialize_game_state(original)

    store.set_state(lambda _prev: make_state(player_x=999))
    assert rehydrate_game_state(save, store)

    assert store.get_state() == original


def test_rebuilt_state_shares_nothing_with_the_save(make_state):
    save = serialize_game_state(make_state())

    rebuilt = build_game_state(save)
    rebuilt.entities_by_id["player-1"].character_sprite_tiles[0][0] = 42
    rebuilt.world_bounds_ids.append("extra")

    assert save.state.entities_by_id["player-1"].character_sprite_tiles[0][0] == 0
    assert save.state.world_bounds_ids == ["crate-1"]


def test_missing_z_rehydrates_as_zero(v0_payload, store):
    assert rehydrate_game_state(v0_payload, store)
    assert store.get_state().player.position.z == 0


def test_serialized_snapshot_does_not_alias_live_state(make_state):
    state = make_state()
    wire = game_state_to_wire(state)

    state.entities_by_id["player-1"].character_sprite_tiles[0][0] = 7
    state.world_bounds_ids.append("late")

    assert wire["entitiesById"]["player-1"]["characterSpriteTiles"][0][0] == 0
    assert wire["worldBoundsIds"] == ["crate-1"]


def test_invalid_candidate_leaves_target_untouched(store):
    before = store.get_state()

    assert rehydrate_game_state({"version": 1, "savedAt": "x", "state": {}}, store) is False
    assert rehydrate_game_state("not a save", store) is False

    assert store.set_calls == 0
    assert store.get_state() is before


def test_rejected_update_reports_failure(make_state, rejecting_store):
    save = serialize_game_state(make_state(player_x=1))

    assert rehydrate_game_state(save, rejecting_store) is False
    assert rejecting_store.set_calls == 1


def test_live_state_breaking_the_schema_cannot_be_serialized(make_state):
    state = make_state()
    state.player_id = "ghost"

    with pytest.raises(ValidationError):
        serialize_game_state(state)

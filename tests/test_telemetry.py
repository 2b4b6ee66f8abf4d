import json
from pathlib import Path

import pytest

from ursa_save.events import EventBus, SignalType
from ursa_save.telemetry import TelemetryClient, attach_telemetry


def test_record_and_flush(tmp_path: Path):
    out = tmp_path / "tel"
    tc = TelemetryClient(enabled=True, out_dir=out, app_name="TestApp", flush_size=10)
    tc.set_context(profile="local")

    tc.record(SignalType.SLOT_SAVED, {"slot": "alpha"})
    tc.record(SignalType.SLOT_FAILED, {"code": "invalid-slot"})
    tc.flush()

    lines = tc.output_file.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    first, second = (json.loads(line) for line in lines)
    assert first["signal"] == "save:slot:saved"
    assert first["attrs"]["app"] == "TestApp"
    assert first["attrs"]["profile"] == "local"
    assert first["attrs"]["slot"] == "alpha"
    assert second["seq"] == 2
    assert second["session"] == tc.session


def test_flushes_when_buffer_is_full(tmp_path: Path):
    tc = TelemetryClient(enabled=True, out_dir=tmp_path, flush_size=2)

    tc.record("a")
    assert not tc.output_file.exists()
    tc.record("b")

    assert len(tc.output_file.read_text(encoding="utf-8").splitlines()) == 2


def test_disabled_client_writes_nothing(tmp_path: Path):
    out = tmp_path / "tel"
    tc = TelemetryClient(enabled=False, out_dir=out)

    tc.record("x")
    tc.close()

    assert not out.exists()


def test_attach_telemetry_records_lifecycle_signals(tmp_path: Path):
    bus = EventBus()
    tc = TelemetryClient(enabled=True, out_dir=tmp_path)
    detach = attach_telemetry(bus, tc)

    bus.publish(SignalType.SLOT_SAVED, {"slot": "alpha"})
    bus.publish("not-a-save-signal", {})
    detach()
    bus.publish(SignalType.SLOT_DELETED, {"slot": "alpha"})
    tc.close()

    rows = [json.loads(line) for line in tc.output_file.read_text(encoding="utf-8").splitlines()]
    assert [row["signal"] for row in rows] == [SignalType.SLOT_SAVED]


def test_old_sessions_are_pruned(tmp_path: Path):
    for stamp in ("20240101T000000Z", "20240102T000000Z", "20240103T000000Z"):
        (tmp_path / f"session-{stamp}-deadbeef.jsonl").write_text("{}\n", encoding="utf-8")

    tc = TelemetryClient(enabled=True, out_dir=tmp_path, keep_sessions=2)
    tc.record("a")
    tc.close()

    remaining = sorted(p.name for p in tmp_path.glob("session-*.jsonl"))
    assert len(remaining) == 2
    assert "session-20240103T000000Z-deadbeef.jsonl" in remaining
    assert tc.output_file.name in remaining


def test_failed_write_keeps_records_for_next_flush(tmp_path: Path):
    blocker = tmp_path / "tel"
    blocker.write_text("not a directory", encoding="utf-8")
    tc = TelemetryClient(enabled=True, out_dir=blocker, flush_size=10)
    tc.record("a")
    tc.record("b")

    with pytest.raises(OSError):
        tc.flush()

    blocker.unlink()
    tc.record("c")
    tc.flush()

    rows = [json.loads(line) for line in tc.output_file.read_text(encoding="utf-8").splitlines()]
    assert [row["signal"] for row in rows] == ["a", "b", "c"]


def test_unserialisable_attrs_are_written_as_text(tmp_path: Path):
    tc = TelemetryClient(enabled=True, out_dir=tmp_path)

    tc.record("a", {"path": tmp_path})
    tc.close()

    row = json.loads(tc.output_file.read_text(encoding="utf-8"))
    assert row["attrs"]["path"] == str(tmp_path)

import json
from pathlib import Path

from ursa_save.app import build_services
from ursa_save.config import PersistenceConfig
from ursa_save.events import SignalType
from ursa_save.save import RecoveryStatus
from ursa_save.storage import FileStorage, MemoryStorage


def test_services_share_storage_bus_and_keys(store, bus, signals):
    storage = MemoryStorage()
    services = build_services(PersistenceConfig(key_prefix="g1:", max_rollbacks_per_slot=2), store, storage, bus)

    assert services.slots.save_slot("alpha").ok
    assert services.quick.quick_save()

    assert storage.get("g1:slot:alpha") is not None
    assert storage.get("g1:quick") is not None
    assert services.recovery.inspect_startup().status == RecoveryStatus.RECOVERABLE
    assert services.slots.max_rollbacks_per_slot == 2
    assert services.import_limits.max_bytes == 1024 * 1024
    assert SignalType.SLOT_SAVED in [event.name for event in signals]


def test_default_storage_is_file_backed(tmp_path: Path, store):
    services = build_services(PersistenceConfig(storage_dir=tmp_path), store)

    assert isinstance(services.storage, FileStorage)
    assert services.storage.root == tmp_path
    assert services.telemetry is None


def test_telemetry_enabled_by_config(tmp_path: Path, store):
    config = PersistenceConfig(telemetry_enabled=True, telemetry_dir=tmp_path / "tel")
    services = build_services(config, store, MemoryStorage())

    services.slots.save_slot("alpha")
    services.close()

    rows = [json.loads(line) for line in services.telemetry.output_file.read_text(encoding="utf-8").splitlines()]
    assert [row["signal"] for row in rows] == [SignalType.SLOT_SAVED]


def test_close_flushes_pending_quick_save(store):
    storage = MemoryStorage()
    services = build_services(None, store, storage)

    services.scheduler.notify_change()
    services.close()

    assert storage.get("save:quick") is not None

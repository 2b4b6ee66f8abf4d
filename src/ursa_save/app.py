"""Composition root: wire storage, signals and the save services together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .config import PersistenceConfig
from .events import EventBus
from .save.files import ImportLimits
from .save.keys import SaveKeys
from .save.quick import QuickSaveScheduler, QuickSaveService
from .save.recovery import SaveRecoveryService
from .save.slots import SaveSlotService
from .storage.base import KeyValueStorage
from .storage.files import FileStorage
from .telemetry import TelemetryClient, attach_telemetry

logger = logging.getLogger(__name__)


@dataclass
class PersistenceServices:
    config: PersistenceConfig
    storage: KeyValueStorage
    bus: EventBus
    keys: SaveKeys
    slots: SaveSlotService
    recovery: SaveRecoveryService
    quick: QuickSaveService
    scheduler: QuickSaveScheduler
    import_limits: ImportLimits
    telemetry: Optional[TelemetryClient] = None
    _detach_telemetry: Optional[Callable[[], None]] = None

    def close(self) -> None:
        """Run any pending quick save, then stop and flush telemetry."""
        self.scheduler.flush()
        if self._detach_telemetry is not None:
            self._detach_telemetry()
            self._detach_telemetry = None
        if self.telemetry is not None:
            self.telemetry.close()


def build_services(
    config: Optional[PersistenceConfig],
    store: Any,
    storage: Optional[KeyValueStorage] = None,
    bus: Optional[EventBus] = None,
    telemetry: Optional[TelemetryClient] = None,
) -> PersistenceServices:
    """Build every save service over one storage, one bus and one key layout.

    Storage defaults to a FileStorage under config.storage_dir (or the platform
    user data dir). A telemetry client is created when config enables it and
    none is given.
    """
    config = config or PersistenceConfig()
    storage = storage if storage is not None else FileStorage(config.storage_dir)
    bus = bus or EventBus()
    keys = SaveKeys(prefix=config.key_prefix)

    slots = SaveSlotService(storage, store, keys=keys, max_rollbacks_per_slot=config.max_rollbacks_per_slot, bus=bus)
    recovery = SaveRecoveryService(storage, store, storage_key=keys.quick, bus=bus)
    quick = QuickSaveService(storage, store, key=keys.quick)
    scheduler = QuickSaveScheduler(quick.quick_save, wait_ms=config.quick_save_debounce_ms)

    if telemetry is None and config.telemetry_enabled:
        telemetry = TelemetryClient(enabled=True, out_dir=config.telemetry_dir)
    detach = attach_telemetry(bus, telemetry) if telemetry is not None else None

    logger.info(
        "Persistence services ready (storage=%s, prefix=%r, rollbacks=%d, telemetry=%s)",
        type(storage).__name__,
        keys.prefix,
        config.max_rollbacks_per_slot,
        telemetry is not None and telemetry.enabled,
    )
    return PersistenceServices(
        config=config,
        storage=storage,
        bus=bus,
        keys=keys,
        slots=slots,
        recovery=recovery,
        quick=quick,
        scheduler=scheduler,
        import_limits=ImportLimits(
            max_bytes=config.import_max_bytes,
            max_json_nodes=config.import_max_json_nodes,
            max_json_depth=config.import_max_json_depth,
        ),
        telemetry=telemetry,
        _detach_telemetry=detach,
    )

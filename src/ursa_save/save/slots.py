"""Named save slots with a bounded per-slot rollback history.

Every operation re-reads storage; nothing is cached between calls, so the
storage capability stays the only owner of save data and every record handed
back to a caller is an independent copy.

Write order for a save is: rollback history, slot body, slot index. The body
and index writes are not transactional: if the process dies between them the
index misses an entry its body key has. reconcile_index() repairs that on
storage that can enumerate its keys.

Two callers saving the same slot at the same time are not serialized here; the
rollback capture of one can interleave with the writes of the other.
"""

from __future__ import annotations

import itertools
import json
import logging
import math
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..events import EventBus, SignalType
from ..schema.models import RollbackRecord, RollbackSnapshot, SaveGame, SaveSlotMetadata
from ..schema.save_game import migrate_save_game
from ..storage.base import EnumerableStorage, KeyValueStorage
from .keys import SaveKeys, is_valid_slot
from .results import SlotErrorCode, SlotResult
from .serializer import rehydrate_game_state, serialize_game_state

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROLLBACKS_PER_SLOT = 5

Clock = Callable[[], float]
RollbackIdFactory = Callable[[str, int, int], str]


def wall_clock_ms() -> float:
    return time.time() * 1000


def normalize_ms(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, int(number))


def normalize_playtime(value: Any) -> int:
    """Whole non-negative seconds; anything unusable counts as 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


def sort_slot_metadata(items: List[SaveSlotMetadata]) -> List[SaveSlotMetadata]:
    """Newest timestamp first, ties broken by slot id."""
    by_slot = sorted(items, key=lambda entry: entry.slot)
    return sorted(by_slot, key=lambda entry: entry.timestamp, reverse=True)


def _default_rollback_id(slot: str, at_ms: int, sequence: int) -> str:
    return f"rollback-{slot}-{at_ms}-{sequence}"


def _parse_json(raw: str) -> Any:
    return json.loads(raw)


class SaveSlotService:
    """Save, load, delete and roll back named save slots."""

    def __init__(
        self,
        storage: Optional[KeyValueStorage],
        store: Any = None,
        *,
        keys: Optional[SaveKeys] = None,
        max_rollbacks_per_slot: int = DEFAULT_MAX_ROLLBACKS_PER_SLOT,
        bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
        rollback_id_factory: Optional[RollbackIdFactory] = None,
        migrate: Callable[[Any], Optional[SaveGame]] = migrate_save_game,
        serialize: Optional[Callable[[], SaveGame]] = None,
        rehydrate: Optional[Callable[[SaveGame], bool]] = None,
    ) -> None:
        if store is None and (serialize is None or rehydrate is None):
            raise ValueError("SaveSlotService needs a state store or explicit serialize/rehydrate callables")
        self._storage = storage
        self._store = store
        self._keys = keys or SaveKeys()
        self._max_rollbacks = max(1, int(max_rollbacks_per_slot))
        self._bus = bus
        self._clock = clock or wall_clock_ms
        self._rollback_id = rollback_id_factory or _default_rollback_id
        self._sequence = itertools.count(1)
        self._migrate = migrate
        self._serialize = serialize or self._serialize_store
        self._rehydrate = rehydrate or self._rehydrate_store

    @property
    def keys(self) -> SaveKeys:
        return self._keys

    @property
    def max_rollbacks_per_slot(self) -> int:
        return self._max_rollbacks

    # Defaults bound to the live store

    def _serialize_store(self) -> SaveGame:
        state = self._store.get_state()
        if state is None:
            raise ValueError("There is no live game state to save")
        return serialize_game_state(state)

    def _rehydrate_store(self, save: SaveGame) -> bool:
        return rehydrate_game_state(save, self._store)

    # Signals and failures

    def _now_ms(self) -> int:
        return normalize_ms(self._clock())

    def _publish(self, name: str, payload: Dict[str, Any]) -> None:
        if self._bus is not None:
            self._bus.publish(name, payload)

    def _fail(self, slot: str, code: SlotErrorCode, message: str) -> SlotResult[Any]:
        logger.warning("Slot operation failed (slot=%r, code=%s): %s", slot, code.value, message)
        self._publish(
            SignalType.SLOT_FAILED,
            {"slot": slot, "code": code.value, "message": message, "atMs": self._now_ms()},
        )
        return SlotResult.failure(code, message)

    # Storage records

    def _read_index(self) -> List[SaveSlotMetadata]:
        raw = self._storage.get(self._keys.index)
        if not raw:
            return []
        try:
            parsed = _parse_json(raw)
        except (ValueError, RecursionError):
            logger.warning("Slot index is not valid JSON; treating it as empty")
            return []
        if not isinstance(parsed, list):
            return []
        entries: List[SaveSlotMetadata] = []
        for item in parsed:
            try:
                entries.append(SaveSlotMetadata.model_validate(item))
            except ValidationError:
                logger.debug("Dropping malformed slot index entry: %r", item)
        return sort_slot_metadata(entries)

    def _write_index(self, entries: List[SaveSlotMetadata]) -> None:
        payload = [entry.to_wire() for entry in sort_slot_metadata(entries)]
        self._storage.set(self._keys.index, json.dumps(payload))

    def _find_entry(self, slot: str) -> Optional[SaveSlotMetadata]:
        return next((entry for entry in self._read_index() if entry.slot == slot), None)

    def _update_index_entry(self, metadata: SaveSlotMetadata) -> None:
        entries = [entry for entry in self._read_index() if entry.slot != metadata.slot]
        entries.append(metadata)
        self._write_index(entries)

    def _read_rollbacks(self, slot: str) -> List[RollbackRecord]:
        raw = self._storage.get(self._keys.rollback(slot))
        if not raw:
            return []
        try:
            parsed = _parse_json(raw)
        except (ValueError, RecursionError):
            logger.warning("Rollback history for slot %r is not valid JSON; treating it as empty", slot)
            return []
        if not isinstance(parsed, list):
            return []
        records: List[RollbackRecord] = []
        for item in parsed:
            try:
                records.append(RollbackRecord.model_validate(item))
            except ValidationError:
                logger.debug("Dropping malformed rollback record for slot %r", slot)
        return records

    def _write_rollbacks(self, slot: str, records: List[RollbackRecord]) -> None:
        key = self._keys.rollback(slot)
        if not records:
            self._storage.remove(key)
            return
        self._storage.set(key, json.dumps([record.to_wire() for record in records]))

    def _parse_and_migrate(self, raw: str) -> Optional[SaveGame]:
        try:
            parsed = _parse_json(raw)
        except (ValueError, RecursionError):
            return None
        return self._migrate(parsed)

    @staticmethod
    def _build_metadata(slot: str, save: SaveGame, playtime: int) -> SaveSlotMetadata:
        return SaveSlotMetadata.model_validate(
            {"slot": slot, "timestamp": save.saved_at, "playtime": playtime, "version": save.version}
        )

    def _capture_rollback(self, slot: str, previous: SaveGame, playtime: int) -> RollbackSnapshot:
        at_ms = self._now_ms()
        record = RollbackRecord.model_validate(
            {
                "id": self._rollback_id(slot, at_ms, next(self._sequence)),
                "slot": slot,
                "timestamp": previous.saved_at,
                "playtime": playtime,
                "version": previous.version,
                "createdAtMs": at_ms,
                "payload": previous.to_wire(),
            }
        )
        records = self._read_rollbacks(slot)
        records.insert(0, record)
        self._write_rollbacks(slot, records[: self._max_rollbacks])
        snapshot = record.snapshot()
        logger.info("Captured rollback %s for slot %r", snapshot.id, slot)
        self._publish(SignalType.SLOT_ROLLBACK_CREATED, snapshot.to_wire())
        return snapshot

    # Public API

    def save_slot(
        self,
        slot: str,
        *,
        playtime: Optional[float] = None,
        create_rollback_snapshot: bool = True,
    ) -> SlotResult[SaveSlotMetadata]:
        """Write the live state to slot, archiving the body it replaces."""
        slot_id = slot.strip() if isinstance(slot, str) else ""
        if not is_valid_slot(slot_id):
            return self._fail(str(slot), SlotErrorCode.INVALID_SLOT, "Slot id is invalid.")
        if self._storage is None:
            return self._fail(slot_id, SlotErrorCode.STORAGE_UNAVAILABLE, "Storage is unavailable.")

        normalized_playtime = normalize_playtime(playtime)

        try:
            next_save = self._serialize()
        except Exception as e:  # noqa: BLE001
            logger.exception("Live state could not be serialized for slot %r", slot_id)
            return self._fail(slot_id, SlotErrorCode.INVALID_SAVE, f"Live state could not be serialized: {e}")

        if create_rollback_snapshot:
            try:
                previous_raw = self._storage.get(self._keys.slot(slot_id))
            except Exception as e:  # noqa: BLE001
                return self._fail(slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not read previous save slot: {e}")

            previous: Optional[SaveGame] = None
            if previous_raw and previous_raw.strip():
                try:
                    previous = self._parse_and_migrate(previous_raw)
                except Exception:  # noqa: BLE001
                    logger.debug("Migrating previous body of slot %r raised", slot_id, exc_info=True)
                if previous is None:
                    logger.warning("Previous body of slot %r is unreadable; no rollback captured", slot_id)

            if previous is not None:
                try:
                    previous_entry = self._find_entry(slot_id)
                    self._capture_rollback(
                        slot_id,
                        previous,
                        previous_entry.playtime if previous_entry else normalized_playtime,
                    )
                except Exception as e:  # noqa: BLE001
                    return self._fail(
                        slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not persist rollback snapshot: {e}"
                    )

        metadata = self._build_metadata(slot_id, next_save, normalized_playtime)
        try:
            self._storage.set(self._keys.slot(slot_id), json.dumps(next_save.to_wire()))
        except Exception as e:  # noqa: BLE001
            return self._fail(slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not write save slot: {e}")

        try:
            self._update_index_entry(metadata)
        except Exception as e:  # noqa: BLE001
            # The body is already written; reconcile_index() can restore the entry.
            return self._fail(slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not update save slot index: {e}")

        logger.info("Saved slot %r (playtime=%ss)", slot_id, normalized_playtime)
        self._publish(SignalType.SLOT_SAVED, metadata.to_wire())
        return SlotResult.success(metadata)

    def load_slot(self, slot: str) -> SlotResult[SaveSlotMetadata]:
        """Read, migrate and apply the save in slot to the live state."""
        slot_id = slot.strip() if isinstance(slot, str) else ""
        if not is_valid_slot(slot_id):
            return self._fail(str(slot), SlotErrorCode.INVALID_SLOT, "Slot id is invalid.")
        if self._storage is None:
            return self._fail(slot_id, SlotErrorCode.STORAGE_UNAVAILABLE, "Storage is unavailable.")

        try:
            raw = self._storage.get(self._keys.slot(slot_id))
        except Exception as e:  # noqa: BLE001
            return self._fail(slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not read save slot: {e}")
        if raw is None or not raw.strip():
            return self._fail(slot_id, SlotErrorCode.MISSING_SLOT, f'Save slot "{slot_id}" is empty.')

        try:
            parsed = _parse_json(raw)
        except (ValueError, RecursionError):
            return self._fail(
                slot_id, SlotErrorCode.INVALID_SAVE, f'Save slot "{slot_id}" contains invalid JSON payload.'
            )

        migrated = self._migrate(parsed)
        if migrated is None:
            return self._fail(
                slot_id, SlotErrorCode.INVALID_SAVE, f'Save slot "{slot_id}" payload is invalid or unsupported.'
            )

        if not self._rehydrate(migrated):
            return self._fail(
                slot_id,
                SlotErrorCode.REHYDRATE_FAILED,
                f'Save slot "{slot_id}" could not be restored to runtime state.',
            )

        try:
            entry = self._find_entry(slot_id)
        except Exception:  # noqa: BLE001
            logger.warning("Slot index unreadable while loading %r; using save metadata", slot_id, exc_info=True)
            entry = None
        metadata = entry or self._build_metadata(slot_id, migrated, 0)

        logger.info("Loaded slot %r saved at %s", slot_id, migrated.saved_at)
        self._publish(SignalType.SLOT_LOADED, metadata.to_wire())
        return SlotResult.success(metadata)

    def delete_slot(self, slot: str) -> SlotResult[bool]:
        """Remove slot body, rollback history and index entry. Deleting an empty slot succeeds."""
        slot_id = slot.strip() if isinstance(slot, str) else ""
        if not is_valid_slot(slot_id):
            return self._fail(str(slot), SlotErrorCode.INVALID_SLOT, "Slot id is invalid.")
        if self._storage is None:
            return self._fail(slot_id, SlotErrorCode.STORAGE_UNAVAILABLE, "Storage is unavailable.")

        try:
            self._storage.remove(self._keys.slot(slot_id))
            self._storage.remove(self._keys.rollback(slot_id))
            entries = self._read_index()
            remaining = [entry for entry in entries if entry.slot != slot_id]
            if len(remaining) != len(entries):
                self._write_index(remaining)
        except Exception as e:  # noqa: BLE001
            return self._fail(slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not delete save slot: {e}")

        logger.info("Deleted slot %r", slot_id)
        self._publish(SignalType.SLOT_DELETED, {"slot": slot_id, "atMs": self._now_ms()})
        return SlotResult.success(True)

    def list_slots(self) -> List[SaveSlotMetadata]:
        if self._storage is None:
            return []
        try:
            return self._read_index()
        except Exception:  # noqa: BLE001
            logger.error("Could not read slot index", exc_info=True)
            return []

    def get_slot(self, slot: str) -> Optional[SaveSlotMetadata]:
        slot_id = slot.strip() if isinstance(slot, str) else ""
        if not is_valid_slot(slot_id):
            return None
        return next((entry for entry in self.list_slots() if entry.slot == slot_id), None)

    def list_rollback_snapshots(self, slot: str) -> List[RollbackSnapshot]:
        """Rollback history of slot, most recent first, without payloads."""
        slot_id = slot.strip() if isinstance(slot, str) else ""
        if not is_valid_slot(slot_id) or self._storage is None:
            return []
        try:
            records = self._read_rollbacks(slot_id)
        except Exception:  # noqa: BLE001
            logger.error("Could not read rollback history for slot %r", slot_id, exc_info=True)
            return []
        return [record.snapshot() for record in records]

    def restore_rollback_snapshot(self, slot: str, snapshot_id: str) -> SlotResult[SaveSlotMetadata]:
        """Apply an archived body to the live state and make it the slot's current save."""
        slot_id = slot.strip() if isinstance(slot, str) else ""
        wanted = snapshot_id.strip() if isinstance(snapshot_id, str) else ""
        if not is_valid_slot(slot_id):
            return self._fail(str(slot), SlotErrorCode.INVALID_SLOT, "Slot id is invalid.")
        if not wanted:
            return self._fail(slot_id, SlotErrorCode.MISSING_ROLLBACK, "Rollback snapshot id is required.")
        if self._storage is None:
            return self._fail(slot_id, SlotErrorCode.STORAGE_UNAVAILABLE, "Storage is unavailable.")

        try:
            records = self._read_rollbacks(slot_id)
        except Exception as e:  # noqa: BLE001
            return self._fail(slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not read rollback history: {e}")

        target = next((record for record in records if record.id == wanted), None)
        if target is None:
            return self._fail(
                slot_id,
                SlotErrorCode.MISSING_ROLLBACK,
                f'Rollback snapshot "{wanted}" was not found for slot "{slot_id}".',
            )

        migrated = self._migrate(target.payload)
        if migrated is None:
            return self._fail(
                slot_id, SlotErrorCode.INVALID_SAVE, f'Rollback snapshot "{wanted}" is invalid or unsupported.'
            )

        if not self._rehydrate(migrated):
            return self._fail(
                slot_id, SlotErrorCode.REHYDRATE_FAILED, f'Rollback snapshot "{wanted}" could not be restored.'
            )

        metadata = self._build_metadata(slot_id, migrated, target.playtime)
        try:
            self._storage.set(self._keys.slot(slot_id), json.dumps(migrated.to_wire()))
            self._update_index_entry(metadata)
        except Exception as e:  # noqa: BLE001
            return self._fail(slot_id, SlotErrorCode.STORAGE_FAILED, f"Could not persist rollback restore: {e}")

        logger.info("Restored rollback %s into slot %r", wanted, slot_id)
        self._publish(SignalType.SLOT_ROLLBACK_RESTORED, target.snapshot().to_wire())
        return SlotResult.success(metadata)

    def reconcile_index(self) -> SlotResult[List[SaveSlotMetadata]]:
        """Rebuild the slot index from the slot bodies actually present in storage.

        Adds entries (playtime 0) for readable bodies the index misses and drops
        entries whose body is gone. Needs storage that can enumerate keys.
        """
        if self._storage is None:
            return self._fail("*", SlotErrorCode.STORAGE_UNAVAILABLE, "Storage is unavailable.")
        if not isinstance(self._storage, EnumerableStorage):
            return self._fail(
                "*", SlotErrorCode.STORAGE_UNAVAILABLE, "Storage cannot enumerate keys; index reconciliation needs it."
            )

        try:
            body_slots = set()
            for key in self._storage.keys():
                slot_id = self._keys.slot_id_for(key)
                if slot_id is not None:
                    body_slots.add(slot_id)

            index = self._read_index()
            kept = [entry for entry in index if entry.slot in body_slots]
            dropped = sorted(entry.slot for entry in index if entry.slot not in body_slots)
            known = {entry.slot for entry in kept}
            added: List[SaveSlotMetadata] = []
            for slot_id in sorted(body_slots - known):
                raw = self._storage.get(self._keys.slot(slot_id))
                save = self._parse_and_migrate(raw) if raw and raw.strip() else None
                if save is None:
                    logger.warning("Slot %r has an unreadable body; leaving it out of the index", slot_id)
                    continue
                added.append(self._build_metadata(slot_id, save, 0))

            if added or dropped:
                self._write_index(kept + added)
        except Exception as e:  # noqa: BLE001
            return self._fail("*", SlotErrorCode.STORAGE_FAILED, f"Could not reconcile slot index: {e}")

        if added or dropped:
            logger.info("Reconciled slot index: added=%s dropped=%s", [entry.slot for entry in added], dropped)
        self._publish(
            SignalType.SLOT_INDEX_RECONCILED,
            {"added": [entry.slot for entry in added], "dropped": dropped, "atMs": self._now_ms()},
        )
        return SlotResult.success(sort_slot_metadata(kept + added))

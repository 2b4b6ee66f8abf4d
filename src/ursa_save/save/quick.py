from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional

from ..storage.base import KeyValueStorage
from .keys import SaveKeys
from .serializer import rehydrate_game_state, serialize_game_state

logger = logging.getLogger(__name__)

DEFAULT_QUICK_SAVE_WAIT_MS = 500


class QuickSaveService:
    """Single-key quick save: the payload startup recovery inspects.

    Every method reports success as a bool and never raises.
    """

    def __init__(self, storage: Optional[KeyValueStorage], store: Any, key: Optional[str] = None) -> None:
        self._storage = storage
        self._store = store
        self.key = key or SaveKeys().quick

    def quick_save(self) -> bool:
        if self._storage is None:
            return False
        try:
            state = self._store.get_state()
            if state is None:
                logger.warning("Quick save skipped: no live game state")
                return False
            save = serialize_game_state(state)
            self._storage.set(self.key, json.dumps(save.to_wire()))
        except Exception:  # noqa: BLE001
            logger.error("Quick save failed", exc_info=True)
            return False
        logger.debug("Quick saved to %s", self.key)
        return True

    def quick_load(self) -> bool:
        if self._storage is None:
            return False
        try:
            raw = self._storage.get(self.key)
            if not raw:
                return False
            return rehydrate_game_state(json.loads(raw), self._store)
        except Exception:  # noqa: BLE001
            logger.error("Quick load failed", exc_info=True)
            return False

    def clear(self) -> bool:
        if self._storage is None:
            return False
        try:
            self._storage.remove(self.key)
        except Exception:  # noqa: BLE001
            logger.error("Clearing quick save failed", exc_info=True)
            return False
        return True


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class QuickSaveScheduler:
    """Debounced quick save driven by the game loop.

    notify_change() arms one pending save; notifications while armed do not
    push it back, so a steady stream of changes still saves every wait_ms.
    Call poll() once per tick to run the save when it is due.
    """

    def __init__(
        self,
        save: Callable[[], bool],
        wait_ms: float = DEFAULT_QUICK_SAVE_WAIT_MS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._save = save
        self.wait_ms = max(0.0, float(wait_ms))
        self._clock = clock or _monotonic_ms
        self._due_at: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._due_at is not None

    def notify_change(self) -> None:
        if self._due_at is not None:
            return
        self._due_at = self._clock() + self.wait_ms

    def poll(self) -> bool:
        """Run the pending save if its wait elapsed. Returns True if a save ran and succeeded."""
        if self._due_at is None or self._clock() < self._due_at:
            return False
        return self._run()

    def flush(self) -> bool:
        """Run the pending save now, e.g. before the game exits."""
        if self._due_at is None:
            return False
        return self._run()

    def dispose(self) -> None:
        if self._due_at is not None:
            logger.debug("Dropping pending quick save")
        self._due_at = None

    def _run(self) -> bool:
        self._due_at = None
        try:
            return bool(self._save())
        except Exception:  # noqa: BLE001
            logger.error("Scheduled quick save raised", exc_info=True)
            return False

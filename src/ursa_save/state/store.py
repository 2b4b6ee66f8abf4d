from __future__ import annotations

import logging
from threading import RLock
from typing import Callable, List, Optional, Protocol

from .game_state import GameState

logger = logging.getLogger(__name__)

StateUpdater = Callable[[Optional[GameState]], GameState]
StateListener = Callable[[GameState], None]


class StateTarget(Protocol):
    """Anything rehydration can write into."""

    def set_state(self, updater: StateUpdater) -> None:
        ...


class StateSource(Protocol):
    """Anything serialization can read from."""

    def get_state(self) -> Optional[GameState]:
        ...


class GameStore:
    """In-memory, observable container for the live GameState.

    set_state replaces the whole state object with the updater's result in a
    single assignment, so observers never see a half-applied update. Listener
    failures are logged and do not undo the replacement.
    """

    def __init__(self, initial: Optional[GameState] = None) -> None:
        self._state = initial
        self._listeners: List[StateListener] = []
        self._lock = RLock()

    def get_state(self) -> Optional[GameState]:
        return self._state

    def set_state(self, updater: StateUpdater) -> None:
        with self._lock:
            next_state = updater(self._state)
            if not isinstance(next_state, GameState):
                raise TypeError("state updater must return a GameState")
            self._state = next_state
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(next_state)
            except Exception:  # noqa: BLE001
                logger.exception("State listener %r failed", listener)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

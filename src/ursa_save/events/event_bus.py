from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """A lifecycle signal as delivered to subscribers.

    Attributes:
        name: Signal name, one of the SignalType constants.
        payload: Plain data describing the outcome. Each subscriber gets its own copy.
    """

    name: str
    payload: Dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[Event], None]


class EventBus:
    """Synchronous publish/subscribe for save lifecycle signals.

    Subscribers run on the publisher's thread in subscription order. One
    subscriber raising is logged and does not stop the others, and never
    reaches the publishing service.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = RLock()

    def subscribe(self, name: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback for signal name. Returns a callable that removes it again."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            self._subscribers.setdefault(name, []).append(callback)
        return lambda: self.unsubscribe(name, callback)

    def subscribe_many(self, names: Iterable[str], callback: Subscriber) -> Callable[[], None]:
        removers = [self.subscribe(name, callback) for name in names]

        def _remove_all() -> None:
            for remove in removers:
                remove()

        return _remove_all

    def unsubscribe(self, name: str, callback: Subscriber) -> None:
        with self._lock:
            callbacks = self._subscribers.get(name)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[name]

    def subscriber_count(self, name: str) -> int:
        with self._lock:
            return len(self._subscribers.get(name, ()))

    def publish(self, name: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(name, ()))
        if not callbacks:
            return
        logger.debug("Signal %s -> %d subscriber(s)", name, len(callbacks))
        for callback in callbacks:
            try:
                callback(Event(name=name, payload=copy.deepcopy(dict(payload))))
            except Exception:  # noqa: BLE001
                logger.exception("Unhandled exception in subscriber for '%s'", name)

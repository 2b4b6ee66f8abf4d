from .event_bus import Event, EventBus
from .types import SignalType

__all__ = [
    "Event",
    "EventBus",
    "SignalType",
]

from __future__ import annotations

import logging
from typing import Callable

from ..events import Event, EventBus, SignalType
from .client import TelemetryClient

logger = logging.getLogger(__name__)


def attach_telemetry(bus: EventBus, client: TelemetryClient) -> Callable[[], None]:
    """Record every save lifecycle signal published on bus. Returns a detach callable."""

    def _record(event: Event) -> None:
        try:
            client.record(event.name, dict(event.payload))
        except OSError:
            logger.warning("Telemetry write failed for %s", event.name, exc_info=True)

    detach = bus.subscribe_many(SignalType.all(), _record)
    logger.debug("Telemetry attached (enabled=%s)", client.enabled)
    return detach

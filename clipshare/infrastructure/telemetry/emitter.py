"""
Product analytics event emitters.

Implements the EventEmitter protocol from core.videos.service. Events go
to a dedicated logger so a log shipper can route them to the analytics
sink without the request path ever waiting on it.
"""

import logging
from typing import Any

from ...core.videos.service import EventEmitter

logger = logging.getLogger(__name__)

event_logger = logging.getLogger("clipshare.events")


class LoggingEventEmitter:
    """Writes each event as a structured log record."""

    def capture(self, event: str, distinct_id: str, properties: dict[str, Any]) -> None:
        event_logger.info(
            event,
            extra={
                "event": event,
                "distinct_id": distinct_id,
                "properties": properties,
            }
        )


class NullEventEmitter:
    """Drops events. Used when telemetry is disabled."""

    def capture(self, event: str, distinct_id: str, properties: dict[str, Any]) -> None:
        pass


def create_event_emitter(enabled: bool = True) -> EventEmitter:
    if enabled:
        return LoggingEventEmitter()

    logger.debug("Telemetry disabled")
    return NullEventEmitter()

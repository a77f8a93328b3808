"""pglo event bus."""

from pglo.events.bus import EventBus, Handler, LargeObjectEvent
from pglo.events.payloads import (
    CloseFailedPayload,
    ObjectClosedPayload,
    ObjectOpenedPayload,
    ObjectPayload,
    StreamPayload,
)

__all__ = [
    "CloseFailedPayload",
    "EventBus",
    "Handler",
    "LargeObjectEvent",
    "ObjectClosedPayload",
    "ObjectOpenedPayload",
    "ObjectPayload",
    "StreamPayload",
]

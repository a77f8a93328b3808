"""Typed payload definitions for each LargeObjectEvent.

Usage example::

    from pglo.events.bus import EventBus, LargeObjectEvent
    from pglo.events.payloads import CloseFailedPayload

    def on_close_failed(event: LargeObjectEvent, payload: CloseFailedPayload) -> None:
        alert(f"large object {payload['oid']} left open: {payload['error']}")

    bus.subscribe(LargeObjectEvent.CLOSE_FAILED, on_close_failed)  # type: ignore[arg-type]
"""

from __future__ import annotations

from typing import Literal, NotRequired, TypedDict

# ── Object lifecycle ──────────────────────────────────────────────────────────


class ObjectPayload(TypedDict):
    """Payload for :attr:`LargeObjectEvent.OBJECT_CREATED` and ``OBJECT_UNLINKED``."""

    oid: int


class ObjectOpenedPayload(TypedDict):
    """Payload for :attr:`LargeObjectEvent.OBJECT_OPENED`."""

    oid: int
    fd: int
    """Transaction-scoped descriptor returned by ``lo_open``."""
    mode: int
    """The ``Mode`` bitmask the object was opened with."""


class ObjectClosedPayload(TypedDict):
    """Payload for :attr:`LargeObjectEvent.OBJECT_CLOSED`."""

    oid: int
    fd: int


# ── Managed streams ───────────────────────────────────────────────────────────


class StreamPayload(TypedDict):
    """Payload for :attr:`LargeObjectEvent.STREAM_ENDED` and ``STREAM_FAILED``."""

    oid: int
    direction: Literal["read", "write"]
    error: NotRequired[str]
    """Only present for ``STREAM_FAILED``."""


class CloseFailedPayload(TypedDict):
    """Payload for :attr:`LargeObjectEvent.CLOSE_FAILED`."""

    oid: int
    fd: int
    error: str

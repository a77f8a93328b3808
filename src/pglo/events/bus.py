"""In-process pub/sub event bus for large object lifecycle events."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

Handler = Callable[["LargeObjectEvent", dict[str, Any]], None | Awaitable[None]]


class LargeObjectEvent(StrEnum):
    """All event types published by pglo components.

    Typed payload definitions for each event live in
    :mod:`pglo.events.payloads`.

    **Payload schemas by event:**

    ``OBJECT_CREATED``, ``OBJECT_UNLINKED``
        :class:`~pglo.events.payloads.ObjectPayload`: ``oid: int``

    ``OBJECT_OPENED``
        :class:`~pglo.events.payloads.ObjectOpenedPayload`:
        ``oid: int``, ``fd: int``, ``mode: int``

    ``OBJECT_CLOSED``
        :class:`~pglo.events.payloads.ObjectClosedPayload`:
        ``oid: int``, ``fd: int``

    ``STREAM_ENDED``, ``STREAM_FAILED``
        :class:`~pglo.events.payloads.StreamPayload`:
        ``oid: int``, ``direction: str``, optional ``error: str``.
        Only published for streams built by the manager's composite
        operations.

    ``CLOSE_FAILED``
        :class:`~pglo.events.payloads.CloseFailedPayload`:
        ``oid: int``, ``fd: int``, ``error: str``.  Published when the
        automatic close after a managed stream ends fails.  The stream's
        own outcome is unaffected.
    """

    OBJECT_CREATED = "object.created"
    OBJECT_OPENED = "object.opened"
    OBJECT_CLOSED = "object.closed"
    OBJECT_UNLINKED = "object.unlinked"

    STREAM_ENDED = "stream.ended"
    STREAM_FAILED = "stream.failed"

    CLOSE_FAILED = "close.failed"


class EventBus:
    """
    Simple in-process pub/sub event bus.

    Design decisions:
    - Sync handlers are called inline within ``publish()``.
    - Async handlers are scheduled via ``asyncio.create_task()``; their failures
      are logged when the task finishes.
    - Handler exceptions are logged but never propagate to the publisher.

    Example::

        bus = EventBus()

        def on_close_failed(event, payload):
            print(f"Could not close large object {payload['oid']}: {payload['error']}")

        bus.subscribe(LargeObjectEvent.CLOSE_FAILED, on_close_failed)
        manager = LargeObjectManager(conn, event_bus=bus)
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._handlers: dict[LargeObjectEvent, list[Handler]] = {}
        self._global_handlers: list[Handler] = []
        self._logger = logger or structlog.get_logger("pglo.events")
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, event: LargeObjectEvent, handler: Handler) -> None:
        """
        Register a handler for a specific event type.

        Args:
            event: The event type to listen for.
            handler: Callable accepting ``(event, payload)``. May be sync or async.
        """
        self._handlers.setdefault(event, []).append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register a handler for ALL event types."""
        self._global_handlers.append(handler)

    def unsubscribe(self, event: LargeObjectEvent, handler: Handler) -> None:
        """Remove a previously registered handler. No-op if not found."""
        handlers = self._handlers.get(event, [])
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    def publish(self, event: LargeObjectEvent, payload: dict[str, Any]) -> None:
        """
        Publish an event to all registered handlers.

        Sync handlers are called immediately in registration order.
        Async handlers are scheduled as background tasks (non-blocking); the
        bus holds a reference until they finish.
        Exceptions from any handler are logged and swallowed.
        """
        all_handlers = list(self._handlers.get(event, [])) + list(self._global_handlers)
        for handler in all_handlers:
            try:
                result = handler(event, payload)
                if asyncio.iscoroutine(result):
                    try:
                        loop = asyncio.get_running_loop()
                    except RuntimeError:
                        # No running event loop; drop the async handler
                        result.close()
                        continue
                    task = loop.create_task(result)
                    self._tasks.add(task)
                    task.add_done_callback(functools.partial(self._on_task_done, event, handler))
            except Exception as exc:
                self._log_handler_error(event, handler, exc)

    def _on_task_done(self, event: LargeObjectEvent, handler: Handler, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._log_handler_error(event, handler, exc)

    def _log_handler_error(self, event: LargeObjectEvent, handler: Handler, exc: BaseException) -> None:
        self._logger.error(
            "event_handler_error",
            event_type=str(event),
            handler=getattr(handler, "__qualname__", repr(handler)),
            error=str(exc),
        )

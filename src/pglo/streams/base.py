"""State machine and completion observers shared by both stream adapters."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from pglo.errors import InvalidArgumentError

if TYPE_CHECKING:
    from pglo.store.large_object import LargeObject

DoneCallback = Callable[[Any, BaseException | None], None | Awaitable[None]]

_logger = structlog.get_logger("pglo.streams")


class StreamState(StrEnum):
    """Lifecycle of a stream adapter.  ``ENDED`` and ``ERRORED`` are terminal."""

    IDLE = "idle"
    PULL_IN_FLIGHT = "pull-in-flight"
    WRITE_IN_FLIGHT = "write-in-flight"
    ENDED = "ended"
    ERRORED = "errored"


class BaseStream:
    """
    Common plumbing for ``ReadStream`` and ``WriteStream``.

    Each adapter owns one ``LargeObject`` and is the only caller of its
    ``read``/``write`` while active.  A per-stream ``asyncio.Lock`` keeps at
    most one remote operation in flight.

    Observers registered with ``add_done_callback()`` fire exactly once, on
    the transition into ``ENDED`` or ``ERRORED``.  They receive
    ``(stream, error)`` where *error* is ``None`` for a clean end.  Sync
    observers run inline; coroutine observers are scheduled as tasks that
    ``settled()`` waits for.
    """

    def __init__(self, large_object: LargeObject, chunk_size: int) -> None:
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise InvalidArgumentError(f"chunk_size must be a positive int, got {chunk_size!r}")
        self._large_object = large_object
        self.chunk_size = chunk_size
        self._state = StreamState.IDLE
        self._error: BaseException | None = None
        self._lock = asyncio.Lock()
        self._callbacks: list[DoneCallback] = []
        self._observer_tasks: list[asyncio.Task[None]] = []

    @property
    def large_object(self) -> LargeObject:
        return self._large_object

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        """The error that moved the stream to ``ERRORED``, if any."""
        return self._error

    @property
    def done(self) -> bool:
        return self._state in (StreamState.ENDED, StreamState.ERRORED)

    def add_done_callback(self, callback: DoneCallback) -> None:
        """
        Register a one-shot observer for the terminal transition.

        A callback added after the stream already finished is invoked
        immediately.
        """
        if self.done:
            self._invoke(callback)
        else:
            self._callbacks.append(callback)

    async def settled(self) -> None:
        """
        Wait for every scheduled observer to finish.

        Raises:
            Exception: The first failure raised by an async observer.
        """
        tasks = list(self._observer_tasks)
        if tasks:
            await asyncio.gather(*tasks)

    async def _wait_observers(self) -> None:
        # Lets the terminal transition complete observer work (the managed
        # close) before control returns to the caller.  Failures stay in the
        # tasks for settled().
        pending = [task for task in self._observer_tasks if not task.done()]
        if pending:
            await asyncio.wait(pending)

    def _finish(self, error: BaseException | None = None) -> None:
        if self.done:
            return
        self._state = StreamState.ERRORED if error is not None else StreamState.ENDED
        self._error = error
        _logger.debug(
            "stream_finished",
            stream=type(self).__name__,
            oid=self._large_object.oid,
            state=str(self._state),
            error=str(error) if error is not None else None,
        )
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, callback: DoneCallback) -> None:
        result = callback(self, self._error)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(_mark_retrieved)
            self._observer_tasks.append(task)


def _mark_retrieved(task: asyncio.Future[Any]) -> None:
    # Observer failures are reported by the observer itself and re-raised
    # from settled(); silence asyncio's "exception was never retrieved".
    if not task.cancelled():
        task.exception()

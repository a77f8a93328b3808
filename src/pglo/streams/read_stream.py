"""Pull-driven async byte stream over a ``LargeObject``."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from pglo.models.config import DEFAULT_CHUNK_SIZE
from pglo.streams.base import BaseStream, StreamState
from pglo.streams.write_stream import WriteStream

if TYPE_CHECKING:
    from pglo.store.large_object import LargeObject


class ReadStream(BaseStream):
    """
    Async iterator yielding the object's bytes in ``chunk_size`` pieces.

    Every pull issues exactly one ``read(chunk_size)``.  A short read is the
    last chunk: it is yielded and the stream ends without a trailing empty
    chunk.  A failed read is raised once; afterwards iteration just stops.
    Async observers registered for the end (such as a managed close) have
    finished by the time the final pull returns.

    Usage::

        async for chunk in obj.get_readable_stream(64 * 1024):
            digest.update(chunk)
    """

    def __init__(self, large_object: LargeObject, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(large_object, chunk_size)

    def __aiter__(self) -> ReadStream:
        return self

    async def __anext__(self) -> bytes:
        async with self._lock:
            if self.done:
                raise StopAsyncIteration
            self._state = StreamState.PULL_IN_FLIGHT
            try:
                data = await self._large_object.read(self.chunk_size)
            except Exception as exc:
                self._finish(exc)
                await self._wait_observers()
                raise
            if len(data) < self.chunk_size:
                # the large object has no more data left
                self._finish()
                await self._wait_observers()
            else:
                self._state = StreamState.IDLE
            if not data:
                raise StopAsyncIteration
            return data

    async def read_all(self) -> bytes:
        """Consume the rest of the stream and return it as one buffer."""
        return b"".join([chunk async for chunk in self])

    async def pipe(self, destination: Any) -> int:
        """
        Copy every remaining chunk into *destination*.

        *destination* is a ``WriteStream`` (ended once the copy completes) or
        any object with a sync or async ``write(bytes)`` method.

        Returns:
            The number of bytes copied.
        """
        total = 0
        async for chunk in self:
            result = destination.write(chunk)
            if inspect.isawaitable(result):
                await result
            total += len(chunk)
        if isinstance(destination, WriteStream):
            await destination.end()
        return total

"""Push-driven async byte sink over a ``LargeObject``."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Iterable
from typing import TYPE_CHECKING, Any

from pglo.errors import InvalidArgumentError, StreamClosedError
from pglo.models.config import DEFAULT_CHUNK_SIZE
from pglo.streams.base import BaseStream, StreamState

if TYPE_CHECKING:
    from pglo.store.large_object import LargeObject


class WriteStream(BaseStream):
    """
    Writes each accepted chunk with exactly one ``lowrite`` call.

    ``write()`` returns only after the remote write settled, so awaiting it
    is the backpressure signal and chunks apply in the order they were
    produced.  No buffering or coalescing happens here.

    Usage::

        stream = obj.get_writable_stream()
        with open(path, "rb") as fh:
            await stream.write_from(fh)
    """

    def __init__(self, large_object: LargeObject, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(large_object, chunk_size)

    def _check_writable(self) -> None:
        if self._state is StreamState.ERRORED:
            raise StreamClosedError(f"Write stream for large object {self._large_object.oid} failed")
        if self._state is StreamState.ENDED:
            raise StreamClosedError(f"Write stream for large object {self._large_object.oid} has ended")

    async def write(self, chunk: bytes | bytearray | memoryview) -> None:
        """
        Write *chunk* and wait for the server to accept it.

        Raises:
            StreamClosedError: If the stream already ended or failed.
            InvalidArgumentError: If *chunk* is not bytes-like.
        """
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise InvalidArgumentError(f"WriteStream accepts bytes-like chunks, got {type(chunk).__name__}")
        async with self._lock:
            self._check_writable()
            await self._write_locked(chunk)

    async def _write_locked(self, chunk: bytes | bytearray | memoryview) -> None:
        self._state = StreamState.WRITE_IN_FLIGHT
        try:
            await self._large_object.write(chunk)
        except Exception as exc:
            self._finish(exc)
            await self._wait_observers()
            raise
        self._state = StreamState.IDLE

    async def end(self, chunk: bytes | bytearray | memoryview | None = None) -> None:
        """
        Optionally write a final *chunk*, then finish the stream.

        Observers fire once the last write has settled, and this returns
        only after async observers (such as a managed close) finished.
        """
        async with self._lock:
            self._check_writable()
            if chunk:
                await self._write_locked(chunk)
            self._finish()
            await self._wait_observers()

    def abort(self, error: BaseException) -> None:
        """Move the stream to ``ERRORED`` without touching the server."""
        self._finish(error)

    async def write_from(self, source: Any) -> int:
        """
        Write everything from *source* and end the stream.

        *source* may be an async iterable of bytes, a sync iterable of bytes,
        or a binary file-like object, which is read in ``chunk_size`` pieces.

        Returns:
            The number of bytes written.
        """
        total = 0
        if hasattr(source, "read"):
            while True:
                chunk = source.read(self.chunk_size)
                if inspect.isawaitable(chunk):
                    chunk = await chunk
                if not chunk:
                    break
                await self.write(chunk)
                total += len(chunk)
        elif isinstance(source, AsyncIterable):
            async for chunk in source:
                await self.write(chunk)
                total += len(chunk)
        elif isinstance(source, Iterable):
            for chunk in source:
                await self.write(chunk)
                total += len(chunk)
        else:
            raise InvalidArgumentError(f"Cannot write from {type(source).__name__}")
        await self.end()
        return total

    async def __aenter__(self) -> WriteStream:
        return self

    async def __aexit__(self, exc_type: Any, exc: BaseException | None, tb: Any) -> None:
        if exc is not None:
            self.abort(exc)
        elif not self.done:
            await self.end()

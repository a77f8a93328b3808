"""Handle over one open PostgreSQL large object."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from pglo.errors import InvalidArgumentError, LargeObjectClosedError
from pglo.models.config import DEFAULT_CHUNK_SIZE
from pglo.models.modes import Whence
from pglo.streams.read_stream import ReadStream
from pglo.streams.write_stream import WriteStream

if TYPE_CHECKING:
    from psycopg import AsyncConnection

_logger = structlog.get_logger("pglo.store")

# Each statement is one round trip.  Casts pin the overload so psycopg's
# smallest-int dumping never picks the wrong server function.
_SQL_CLOSE = "SELECT lo_close(%s::int4)"
_SQL_READ = "SELECT loread(%s::int4, %s::int4)"
_SQL_WRITE = "SELECT lowrite(%s::int4, %s::bytea)"
_SQL_SEEK = "SELECT lo_lseek64(%s::int4, %s::int8, %s::int4)"
_SQL_TELL = "SELECT lo_tell64(%s::int4)"
_SQL_TRUNCATE = "SELECT lo_truncate64(%s::int4, %s::int8)"
# Save the position, seek to the end, restore: one statement so the
# descriptor is never observed at the wrong offset.
_SQL_SIZE = (
    "SELECT seek.size, lo_lseek64(%s::int4, seek.location, 0) FROM"
    " (SELECT lo_lseek64(%s::int4, 0, 2) AS size, tell.location FROM"
    " (SELECT lo_tell64(%s::int4) AS location) tell) seek"
)


async def fetch_scalar(conn: AsyncConnection[Any], query: str, params: tuple[Any, ...]) -> Any:
    """Execute *query* and return the first column of its single row."""
    cursor = await conn.execute(query, params)
    row = await cursor.fetchone()
    if row is None:
        return None
    if isinstance(row, Mapping):
        return next(iter(row.values()))
    return row[0]


class LargeObject:
    """
    An opened large object.

    Wraps the object's permanent ``oid`` and the descriptor returned by
    ``lo_open``.  The descriptor is only valid inside the transaction that
    opened it; every method here is a single statement on that
    transaction's connection and fails if the transaction is gone.

    The current position lives on the server.  Nothing is cached locally, so
    ``tell()`` and ``size()`` always reflect the descriptor's real state.

    Running two operations on the same handle concurrently is undefined,
    including ``close()`` racing an outstanding read or write.

    Usage::

        async with conn.transaction():
            manager = LargeObjectManager(conn)
            async with await manager.open(oid, Mode.READ) as obj:
                header = await obj.read(16)
                total = await obj.size()
    """

    SEEK_SET = Whence.SET
    """A seek from the beginning of the object."""
    SEEK_CUR = Whence.CUR
    """A seek from the current position."""
    SEEK_END = Whence.END
    """A seek from the end of the object."""

    def __init__(self, conn: AsyncConnection[Any], oid: int, fd: int) -> None:
        self._conn = conn
        self.oid = oid
        self.fd = fd
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<LargeObject oid={self.oid} fd={self.fd} {state}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise LargeObjectClosedError(self.oid)

    async def _scalar(self, query: str, params: tuple[Any, ...]) -> Any:
        self._check_open()
        return await fetch_scalar(self._conn, query, params)

    async def close(self) -> None:
        """
        Close this large object.

        No other method may be called afterwards.

        Raises:
            LargeObjectClosedError: If the object was already closed.
        """
        self._check_open()
        self._closed = True
        await fetch_scalar(self._conn, _SQL_CLOSE, (self.fd,))
        _logger.debug("large_object_closed", oid=self.oid, fd=self.fd)

    async def read(self, length: int) -> bytes:
        """
        Read up to *length* bytes from the current position.

        Returns:
            The data read.  A result shorter than *length* means the end of
            the object was reached; the position advanced by exactly
            ``len(result)``.

        Raises:
            InvalidArgumentError: If *length* is negative.
        """
        if length < 0:
            raise InvalidArgumentError(f"read length must be >= 0, got {length}")
        data = await self._scalar(_SQL_READ, (self.fd, length))
        return bytes(data) if data is not None else b""

    async def write(self, data: bytes | bytearray | memoryview) -> int:
        """
        Write *data* at the current position, extending the object if needed.

        Returns:
            The number of bytes written, always ``len(data)``.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidArgumentError(f"write expects a bytes-like object, got {type(data).__name__}")
        written = await self._scalar(_SQL_WRITE, (self.fd, bytes(data)))
        return int(written)

    async def seek(self, position: int, whence: Whence | int = Whence.SET) -> int:
        """
        Move the current position.

        Args:
            position: Offset in bytes, may be negative for ``SEEK_CUR`` and
                ``SEEK_END``.
            whence: One of ``SEEK_SET``, ``SEEK_CUR`` or ``SEEK_END``.

        Returns:
            The new absolute position.
        """
        try:
            ref = Whence(whence)
        except ValueError as exc:
            raise InvalidArgumentError(f"Invalid whence: {whence!r}") from exc
        location = await self._scalar(_SQL_SEEK, (self.fd, position, int(ref)))
        return int(location)

    async def tell(self) -> int:
        """Return the current absolute position."""
        return int(await self._scalar(_SQL_TELL, (self.fd,)))

    async def size(self) -> int:
        """Return the total size of the object without moving the position."""
        return int(await self._scalar(_SQL_SIZE, (self.fd, self.fd, self.fd)))

    async def truncate(self, length: int) -> None:
        """
        Truncate the object to *length* bytes.

        If *length* exceeds the current size the object is extended with zero
        bytes.  The current position is not modified.
        """
        if length < 0:
            raise InvalidArgumentError(f"truncate length must be >= 0, got {length}")
        await self._scalar(_SQL_TRUNCATE, (self.fd, length))

    def get_readable_stream(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> ReadStream:
        """
        Return a stream reading this object from the current position.

        Call this within a transaction block.  The stream does not close the
        object when it ends.
        """
        return ReadStream(self, chunk_size)

    def get_writable_stream(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> WriteStream:
        """
        Return a stream writing to this object from the current position.

        Call this within a transaction block.  The stream does not close the
        object when it ends.
        """
        return WriteStream(self, chunk_size)

    async def __aenter__(self) -> LargeObject:
        return self

    async def __aexit__(self, *exc: object) -> None:
        if not self._closed:
            await self.close()

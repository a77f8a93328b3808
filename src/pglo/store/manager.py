"""Factory and lifecycle coordinator for PostgreSQL large objects."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from pglo.errors import InvalidArgumentError
from pglo.events.bus import EventBus, LargeObjectEvent
from pglo.models.config import ManagerConfig
from pglo.models.modes import Mode
from pglo.store.large_object import LargeObject, fetch_scalar
from pglo.streams.base import BaseStream
from pglo.streams.read_stream import ReadStream
from pglo.streams.write_stream import WriteStream

if TYPE_CHECKING:
    from psycopg import AsyncConnection

_SQL_CREATE = "SELECT lo_creat(%s::int4)"
_SQL_OPEN = "SELECT lo_open(%s::oid, %s::int4)"
_SQL_UNLINK = "SELECT lo_unlink(%s::oid)"


class LargeObjectManager:
    """
    Entry point for PostgreSQL large object access.

    All usage must take place inside a transaction (``BEGIN ... COMMIT``);
    the manager never starts or ends one itself.  It holds no state beyond
    the connection and does not track the handles it returns.

    Usage::

        async with await psycopg.AsyncConnection.connect(dsn) as conn:
            async with conn.transaction():
                manager = LargeObjectManager(conn)
                oid, stream = await manager.create_and_writable_stream()
                with open("photo.jpg", "rb") as fh:
                    await stream.write_from(fh)
                await stream.settled()   # surfaces a failed automatic close
    """

    WRITE = Mode.WRITE
    READ = Mode.READ
    READWRITE = Mode.READWRITE

    def __init__(
        self,
        conn: AsyncConnection[Any],
        config: ManagerConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._conn = conn
        self._config = config or ManagerConfig.default()
        self._event_bus = event_bus
        self._logger = structlog.get_logger("pglo.manager")

    @property
    def config(self) -> ManagerConfig:
        return self._config

    def _publish(self, event: LargeObjectEvent, payload: dict[str, Any]) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event, payload)

    # ── Single-statement operations ────────────────────────────────────────────

    async def create(self) -> int:
        """
        Create a new, empty large object and return its OID.

        The object is created with read-write capability; ``open()`` it to
        use it.
        """
        oid = int(await fetch_scalar(self._conn, _SQL_CREATE, (int(Mode.READWRITE),)))
        self._logger.debug("large_object_created", oid=oid)
        self._publish(LargeObjectEvent.OBJECT_CREATED, {"oid": oid})
        return oid

    async def open(self, oid: int, mode: Mode | int) -> LargeObject:
        """
        Open an existing large object.

        In ``READ`` mode the data read reflects the transaction snapshot that
        was active when ``open`` ran, regardless of later writes by this or
        other transactions.  With ``WRITE`` or ``READWRITE`` reads see all
        writes of other committed transactions as well as writes of the
        current transaction.

        Args:
            oid: The object's identifier.  Must be non-zero.
            mode: One of ``READ``, ``WRITE`` or ``READWRITE``.

        Raises:
            InvalidArgumentError: If *oid* is falsy or *mode* is invalid.
                Nothing is sent to the server in that case.
        """
        if not oid:
            raise InvalidArgumentError("Illegal Argument: oid must be a non-zero identifier")
        checked = Mode.validate(mode)
        fd = int(await fetch_scalar(self._conn, _SQL_OPEN, (oid, int(checked))))
        self._logger.debug("large_object_opened", oid=oid, fd=fd, mode=checked.name)
        self._publish(LargeObjectEvent.OBJECT_OPENED, {"oid": oid, "fd": fd, "mode": int(checked)})
        return LargeObject(self._conn, oid, fd)

    async def unlink(self, oid: int) -> None:
        """
        Delete a large object.

        Unlinking an object that is open elsewhere is left to the server.

        Raises:
            InvalidArgumentError: If *oid* is falsy.  Nothing is sent to the
                server in that case.
        """
        if not oid:
            raise InvalidArgumentError("Illegal Argument: oid must be a non-zero identifier")
        await fetch_scalar(self._conn, _SQL_UNLINK, (oid,))
        self._logger.debug("large_object_unlinked", oid=oid)
        self._publish(LargeObjectEvent.OBJECT_UNLINKED, {"oid": oid})

    # ── Composite stream operations ────────────────────────────────────────────

    async def open_and_readable_stream(
        self, oid: int, chunk_size: int | None = None
    ) -> tuple[int, ReadStream]:
        """
        Open a large object for reading and return ``(size, stream)``.

        The object is closed automatically once the stream has delivered its
        last chunk.  A failed automatic close is logged, published as
        ``CLOSE_FAILED`` and re-raised by ``stream.settled()``; it never
        turns the completed read into a failure.

        Only call this within a transaction block.
        """
        obj = await self.open(oid, Mode.READ)
        try:
            size = await obj.size()
            stream = obj.get_readable_stream(chunk_size or self._config.stream.chunk_size)
        except BaseException:
            await self._discard(obj)
            raise
        self._close_when_ended(stream, "read")
        return size, stream

    async def create_and_writable_stream(
        self, chunk_size: int | None = None
    ) -> tuple[int, WriteStream]:
        """
        Create a large object, open it for writing and return ``(oid, stream)``.

        The object is closed automatically once ``stream.end()`` (or
        ``write_from()``) finished, with the same failure reporting as
        ``open_and_readable_stream()``.

        Only call this within a transaction block.
        """
        oid = await self.create()
        obj = await self.open(oid, Mode.WRITE)
        try:
            stream = obj.get_writable_stream(chunk_size or self._config.stream.chunk_size)
        except BaseException:
            await self._discard(obj)
            raise
        self._close_when_ended(stream, "write")
        return oid, stream

    def _close_when_ended(self, stream: BaseStream, direction: str) -> None:
        obj = stream.large_object

        async def _on_done(_stream: BaseStream, error: BaseException | None) -> None:
            if error is not None:
                # The transaction is most likely aborted; the descriptor goes
                # away with it.
                self._publish(
                    LargeObjectEvent.STREAM_FAILED,
                    {"oid": obj.oid, "direction": direction, "error": str(error)},
                )
                return
            self._publish(LargeObjectEvent.STREAM_ENDED, {"oid": obj.oid, "direction": direction})
            try:
                await obj.close()
            except Exception as exc:
                self._logger.warning(
                    "large_object_close_failed", oid=obj.oid, fd=obj.fd, error=str(exc)
                )
                self._publish(
                    LargeObjectEvent.CLOSE_FAILED,
                    {"oid": obj.oid, "fd": obj.fd, "error": str(exc)},
                )
                raise
            self._publish(LargeObjectEvent.OBJECT_CLOSED, {"oid": obj.oid, "fd": obj.fd})

        stream.add_done_callback(_on_done)

    async def _discard(self, obj: LargeObject) -> None:
        try:
            await obj.close()
        except Exception as exc:
            self._logger.warning("large_object_close_failed", oid=obj.oid, fd=obj.fd, error=str(exc))

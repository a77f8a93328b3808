"""Tests for LargeObjectManager."""

from __future__ import annotations

import hashlib
import io
import os

import pytest
from psycopg import errors as pg_errors
from structlog.testing import capture_logs

from pglo.errors import InvalidArgumentError
from pglo.events.bus import LargeObjectEvent
from pglo.models.config import ManagerConfig, StreamConfig
from pglo.models.modes import Mode
from pglo.store.manager import LargeObjectManager
from pglo.streams.base import StreamState
from tests.conftest import TEST_BYTES, published


class TestBasicOperations:
    async def test_create_returns_nonzero_oid(self, manager, engine):
        oid = await manager.create()
        assert oid != 0
        assert oid in engine.objects
        assert engine.calls("lo_creat") == [(int(Mode.READWRITE),)]

    async def test_create_returns_distinct_oids(self, manager):
        assert await manager.create() != await manager.create()

    async def test_open_passes_mode_bits(self, manager, oid, engine):
        obj = await manager.open(oid, Mode.READ)
        assert obj.oid == oid
        assert engine.calls("lo_open") == [(oid, 0x00040000)]

    async def test_open_accepts_plain_int_mode(self, manager, oid, engine):
        await manager.open(oid, 0x00060000)
        assert engine.descriptors[0].mode == int(Mode.READWRITE)

    @pytest.mark.parametrize("bad_oid", [0, None])
    async def test_open_rejects_falsy_oid_without_statement(self, manager, engine, bad_oid):
        with pytest.raises(InvalidArgumentError):
            await manager.open(bad_oid, Mode.READ)
        assert engine.statements == []

    async def test_open_rejects_invalid_mode(self, manager, oid, engine):
        count = len(engine.statements)
        with pytest.raises(InvalidArgumentError):
            await manager.open(oid, 0x1)
        assert len(engine.statements) == count

    async def test_open_missing_object_is_remote_error(self, manager):
        with pytest.raises(pg_errors.UndefinedObject):
            await manager.open(999_999, Mode.READ)

    async def test_unlink_then_open_fails(self, manager, oid, engine):
        await manager.unlink(oid)
        assert oid not in engine.objects
        with pytest.raises(pg_errors.UndefinedObject, match="does not exist"):
            await manager.open(oid, Mode.READ)

    @pytest.mark.parametrize("bad_oid", [0, None])
    async def test_unlink_rejects_falsy_oid_without_statement(self, manager, engine, bad_oid):
        with pytest.raises(InvalidArgumentError):
            await manager.unlink(bad_oid)
        assert engine.statements == []

    async def test_mode_class_constants(self):
        assert LargeObjectManager.WRITE == 0x00020000
        assert LargeObjectManager.READ == 0x00040000
        assert LargeObjectManager.READWRITE == 0x00060000

    async def test_lifecycle_events(self, manager, event_bus):
        oid = await manager.create()
        obj = await manager.open(oid, Mode.WRITE)
        await obj.close()
        await manager.unlink(oid)
        assert published(event_bus) == [
            LargeObjectEvent.OBJECT_CREATED,
            LargeObjectEvent.OBJECT_OPENED,
            LargeObjectEvent.OBJECT_UNLINKED,
        ]
        _, opened = event_bus.collected[1]
        assert opened == {"oid": oid, "fd": obj.fd, "mode": int(Mode.WRITE)}

    async def test_works_without_event_bus(self, conn, engine):
        manager = LargeObjectManager(conn)
        oid = await manager.create()
        await manager.unlink(oid)
        assert engine.objects == {}


class TestOpenAndReadableStream:
    async def test_returns_size_and_closes_on_end(self, manager, oid, engine, event_bus):
        size, stream = await manager.open_and_readable_stream(oid, 3)
        assert size == len(TEST_BYTES)
        assert stream.chunk_size == 3
        assert await stream.read_all() == TEST_BYTES
        await stream.settled()
        assert stream.large_object.closed
        assert engine.descriptors == {}
        assert published(event_bus)[-2:] == [
            LargeObjectEvent.STREAM_ENDED,
            LargeObjectEvent.OBJECT_CLOSED,
        ]

    async def test_handle_closed_when_loop_exits(self, manager, oid, engine):
        """The automatic close has run by the time iteration stops."""
        _, stream = await manager.open_and_readable_stream(oid, 3)
        async for _chunk in stream:
            pass
        assert len(engine.calls("lo_close")) == 1
        assert stream.large_object.closed
        assert engine.descriptors == {}

    async def test_close_runs_before_transaction_end(self, manager, oid, engine):
        """Ending the transaction right after the loop leaves nothing pending."""
        _, stream = await manager.open_and_readable_stream(oid, 100)
        data = await stream.read_all()
        engine.reset_transaction()
        await stream.settled()
        assert data == TEST_BYTES
        assert not engine.aborted

    async def test_opens_in_read_mode(self, manager, oid, engine):
        await manager.open_and_readable_stream(oid)
        assert engine.calls("lo_open") == [(oid, int(Mode.READ))]

    async def test_default_chunk_size_from_config(self, conn, oid):
        config = ManagerConfig(stream=StreamConfig(chunk_size=4096))
        manager = LargeObjectManager(conn, config=config)
        _, stream = await manager.open_and_readable_stream(oid)
        assert stream.chunk_size == 4096

    async def test_not_closed_before_end(self, manager, oid, engine):
        _, stream = await manager.open_and_readable_stream(oid, 2)
        await stream.__anext__()
        assert not stream.large_object.closed
        assert engine.calls("lo_close") == []

    async def test_rejects_falsy_oid(self, manager, engine):
        with pytest.raises(InvalidArgumentError):
            await manager.open_and_readable_stream(0)
        assert engine.statements == []

    async def test_size_failure_closes_handle(self, manager, oid, engine):
        engine.fail_next("lo_size", pg_errors.InsufficientPrivilege("permission denied"))
        with pytest.raises(pg_errors.InsufficientPrivilege):
            await manager.open_and_readable_stream(oid)
        assert len(engine.calls("lo_close")) == 1

    async def test_close_failure_reported_out_of_band(self, manager, oid, engine, event_bus):
        """A failed automatic close never turns the finished read into an error."""
        _, stream = await manager.open_and_readable_stream(oid, 100)
        engine.fail_next("lo_close", pg_errors.ConnectionFailure("server closed the connection"))
        with capture_logs() as logs:
            data = await stream.read_all()
            with pytest.raises(pg_errors.ConnectionFailure):
                await stream.settled()
        assert data == TEST_BYTES
        assert stream.state is StreamState.ENDED
        assert stream.error is None
        assert LargeObjectEvent.CLOSE_FAILED in published(event_bus)
        _, payload = event_bus.collected[-1]
        assert payload["oid"] == oid
        assert "server closed the connection" in payload["error"]
        assert any(entry["event"] == "large_object_close_failed" for entry in logs)

    async def test_read_failure_leaves_handle_and_publishes(self, manager, oid, engine, event_bus):
        _, stream = await manager.open_and_readable_stream(oid, 2)
        engine.fail_next("loread", pg_errors.AdminShutdown("terminating"))
        with pytest.raises(pg_errors.AdminShutdown):
            await stream.read_all()
        await stream.settled()
        assert engine.calls("lo_close") == []
        assert published(event_bus)[-1] == LargeObjectEvent.STREAM_FAILED


class TestCreateAndWritableStream:
    async def test_creates_writes_and_closes(self, manager, engine, event_bus):
        oid, stream = await manager.create_and_writable_stream(4)
        assert engine.calls("lo_open") == [(oid, int(Mode.WRITE))]
        await stream.write(b"hello ")
        await stream.end(b"world")
        await stream.settled()
        assert engine.objects[oid] == b"hello world"
        assert stream.large_object.closed
        assert published(event_bus)[-1] == LargeObjectEvent.OBJECT_CLOSED

    async def test_close_failure_does_not_fail_stream(self, manager, engine, event_bus):
        oid, stream = await manager.create_and_writable_stream()
        engine.fail_next("lo_close", pg_errors.InFailedSqlTransaction("aborted"))
        await stream.write_from([b"abc"])
        assert stream.state is StreamState.ENDED
        with pytest.raises(pg_errors.InFailedSqlTransaction):
            await stream.settled()
        assert published(event_bus)[-1] == LargeObjectEvent.CLOSE_FAILED
        assert engine.objects[oid] == b"abc"

    async def test_handle_closed_when_end_returns(self, manager, engine):
        _, stream = await manager.create_and_writable_stream()
        await stream.write(b"abc")
        await stream.end()
        assert len(engine.calls("lo_close")) == 1
        assert stream.large_object.closed

    async def test_handle_closed_when_write_from_returns(self, manager, engine):
        _, stream = await manager.create_and_writable_stream()
        await stream.write_from([b"abc"])
        assert len(engine.calls("lo_close")) == 1
        assert engine.descriptors == {}

    async def test_round_trip_hash(self, manager, tmp_path):
        """Streaming a file in and back out reproduces it byte for byte."""
        source = tmp_path / "payload.bin"
        source.write_bytes(os.urandom(100_003))
        digest = hashlib.sha256(source.read_bytes()).hexdigest()

        oid, writer = await manager.create_and_writable_stream()
        with source.open("rb") as fh:
            await writer.write_from(fh)
        await writer.settled()

        size, reader = await manager.open_and_readable_stream(oid)
        out = io.BytesIO()
        await reader.pipe(out)
        await reader.settled()

        assert size == source.stat().st_size
        assert hashlib.sha256(out.getvalue()).hexdigest() == digest

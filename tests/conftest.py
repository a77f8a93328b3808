"""Shared fixtures for pglo tests."""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from pglo.events.bus import EventBus, LargeObjectEvent
from pglo.models.config import ManagerConfig
from pglo.store.manager import LargeObjectManager
from tests.fakes import FakeConnection, FakeLargeObjectEngine

TEST_BYTES = bytes.fromhex("0123456789ABCDEF")


@pytest.fixture
def engine():
    """Fresh in-memory large object engine."""
    return FakeLargeObjectEngine()


@pytest.fixture
def conn(engine):
    """Connection bound to the fake engine, as if inside an open transaction."""
    return FakeConnection(engine)


@pytest.fixture
def event_bus():
    """EventBus with a .collected list for asserting events."""
    bus = EventBus()
    collected: list[tuple[LargeObjectEvent, dict[str, Any]]] = []

    def _collect(event: LargeObjectEvent, payload: dict[str, Any]) -> None:
        collected.append((event, payload))

    bus.subscribe_all(_collect)
    bus.collected = collected  # type: ignore[attr-defined]
    return bus


@pytest.fixture
def manager(conn, event_bus):
    """LargeObjectManager publishing to the collecting event bus."""
    return LargeObjectManager(conn, config=ManagerConfig.default(), event_bus=event_bus)


@pytest_asyncio.fixture
async def oid(manager, engine):
    """A large object pre-filled with TEST_BYTES."""
    new_oid = await manager.create()
    engine.objects[new_oid][:] = TEST_BYTES
    return new_oid


def published(bus: EventBus) -> list[LargeObjectEvent]:
    """Event types collected by the ``event_bus`` fixture, in order."""
    return [event for event, _ in bus.collected]  # type: ignore[attr-defined]

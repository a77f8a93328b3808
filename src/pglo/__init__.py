"""
pglo: async streaming access to PostgreSQL large objects.

Primary entry point::

    from pglo import LargeObjectManager, Mode

    async with conn.transaction():
        manager = LargeObjectManager(conn)
        size, stream = await manager.open_and_readable_stream(oid)
        async for chunk in stream:
            ...
"""

from pglo.compat import callbackify
from pglo.errors import (
    InvalidArgumentError,
    LargeObjectClosedError,
    LargeObjectError,
    StreamClosedError,
)
from pglo.events.bus import EventBus, LargeObjectEvent
from pglo.models import (
    DEFAULT_CHUNK_SIZE,
    SEEK_CUR,
    SEEK_END,
    SEEK_SET,
    ManagerConfig,
    Mode,
    StreamConfig,
    Whence,
)
from pglo.store.large_object import LargeObject
from pglo.store.manager import LargeObjectManager
from pglo.streams import ReadStream, StreamState, WriteStream

__version__ = "0.1.0"

__all__ = [
    # Core
    "LargeObjectManager",
    "LargeObject",
    "ReadStream",
    "WriteStream",
    "StreamState",
    # Modes
    "Mode",
    "Whence",
    "SEEK_SET",
    "SEEK_CUR",
    "SEEK_END",
    # Config
    "ManagerConfig",
    "StreamConfig",
    "DEFAULT_CHUNK_SIZE",
    # Events
    "EventBus",
    "LargeObjectEvent",
    # Errors
    "LargeObjectError",
    "InvalidArgumentError",
    "LargeObjectClosedError",
    "StreamClosedError",
    # Compat
    "callbackify",
]

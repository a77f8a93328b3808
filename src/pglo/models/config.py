"""Configuration models for the large object manager and stream adapters."""

from __future__ import annotations

from pydantic import BaseModel, Field

LOBLKSIZE = 2048
"""PostgreSQL's large object page size (``BLCKSZ / 4`` on a default build)."""

DEFAULT_CHUNK_SIZE = 16384


class StreamConfig(BaseModel):
    """Configuration for ``ReadStream`` and ``WriteStream``."""

    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        ge=1,
        description=(
            "Bytes requested per read and expected per write. Larger chunks cost "
            "more memory on client and server but need fewer round trips, which "
            "matters most on high latency connections."
        ),
    )

    @property
    def block_aligned(self) -> bool:
        """Whether ``chunk_size`` is a multiple of the server page size."""
        return self.chunk_size % LOBLKSIZE == 0


class ManagerConfig(BaseModel):
    """
    Top-level configuration for ``LargeObjectManager``.

    Example::

        config = ManagerConfig(stream=StreamConfig(chunk_size=64 * 1024))
        manager = LargeObjectManager(conn, config=config)
    """

    stream: StreamConfig = Field(default_factory=StreamConfig)

    @classmethod
    def default(cls) -> ManagerConfig:
        """Return a config instance with all defaults."""
        return cls()

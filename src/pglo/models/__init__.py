"""pglo data models."""

from pglo.models.config import DEFAULT_CHUNK_SIZE, LOBLKSIZE, ManagerConfig, StreamConfig
from pglo.models.modes import SEEK_CUR, SEEK_END, SEEK_SET, Mode, Whence

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "LOBLKSIZE",
    "ManagerConfig",
    "Mode",
    "SEEK_CUR",
    "SEEK_END",
    "SEEK_SET",
    "StreamConfig",
    "Whence",
]

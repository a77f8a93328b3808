"""Stream adapters over large objects."""

from pglo.streams.base import BaseStream, DoneCallback, StreamState
from pglo.streams.read_stream import ReadStream
from pglo.streams.write_stream import WriteStream

__all__ = ["BaseStream", "DoneCallback", "ReadStream", "StreamState", "WriteStream"]

"""Exception taxonomy for large object access.

Errors reported by the database itself (object not found, permission
denied, aborted transaction, lost connection) are *not* wrapped: they
surface as the driver's own exceptions so callers can react to the exact
SQLSTATE.
"""

from __future__ import annotations


class LargeObjectError(Exception):
    """Base class for pglo errors."""


class InvalidArgumentError(LargeObjectError, ValueError):
    """Raised for malformed arguments, before any statement is sent."""


class LargeObjectClosedError(LargeObjectError):
    """Raised when a closed ``LargeObject`` is used or closed again."""

    def __init__(self, oid: int) -> None:
        super().__init__(f"Large object {oid} is already closed")
        self.oid = oid


class StreamClosedError(LargeObjectError):
    """Raised when writing to a stream that has ended or failed."""

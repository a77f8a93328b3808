"""Access modes and seek origins for large objects."""

from __future__ import annotations

from enum import IntEnum, IntFlag

from pglo.errors import InvalidArgumentError


class Mode(IntFlag):
    """
    Capability bitmask requested when opening a large object.

    The values are PostgreSQL's ``INV_WRITE`` and ``INV_READ`` flags and must
    not be renumbered.

    In ``READ`` mode the data reflects the transaction snapshot active when
    the object was opened, regardless of later writes.  With ``WRITE`` (or
    ``READWRITE``) reads also see writes of other committed transactions and
    of the current transaction.
    """

    WRITE = 0x00020000
    READ = 0x00040000
    READWRITE = WRITE | READ

    @classmethod
    def validate(cls, value: Mode | int) -> Mode:
        """
        Coerce *value* into a ``Mode``.

        Raises:
            InvalidArgumentError: If *value* carries bits outside ``READWRITE``
                or sets neither the read nor the write bit.
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgumentError(f"mode must be an int flag, got {value!r}")
        allowed = int(cls.READWRITE)
        if int(value) & ~allowed or not int(value) & allowed:
            raise InvalidArgumentError(f"Invalid access mode: {value:#x}")
        return cls(value)


class Whence(IntEnum):
    """Reference point for ``LargeObject.seek()``."""

    SET = 0
    CUR = 1
    END = 2


SEEK_SET = Whence.SET
SEEK_CUR = Whence.CUR
SEEK_END = Whence.END

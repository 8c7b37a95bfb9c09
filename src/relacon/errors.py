"""Status codes and exceptions raised by relacon.

Every failure is a ``RelaconError`` carrying a ``Status``.  Subclasses also
derive from the closest builtin so callers can catch either way::

    try:
        dev.watchdog_get()
    except DeviceTimeoutError:      # or: except TimeoutError
        ...
"""

from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """Result kinds for device operations."""
    SUCCESS = 0
    ARGUMENT_NULL = 1
    INVALID_PARAM = 2
    OUT_OF_MEMORY = 3
    TIMEOUT = 4
    BAD_RESPONSE = 5
    DEVICE_IO = 6
    INTERNAL = 7
    NO_ENTRY = 8


class RelaconError(Exception):
    """Base class for all relacon errors."""

    status: Status = Status.INTERNAL

    def __init__(self, message: str = ""):
        super().__init__(message or self.status.name.lower().replace('_', ' '))


class ArgumentNullError(RelaconError):
    """A required argument or handle was absent."""
    status = Status.ARGUMENT_NULL


class InvalidParamError(RelaconError, ValueError):
    """An index, config value or command was out of range or malformed."""
    status = Status.INVALID_PARAM


class OutOfMemoryError(RelaconError, MemoryError):
    """Allocation failed; enumeration was aborted."""
    status = Status.OUT_OF_MEMORY


class DeviceTimeoutError(RelaconError, TimeoutError):
    """No report arrived within the read timeout."""
    status = Status.TIMEOUT


class BadResponseError(RelaconError):
    """A response failed the report ID, parse or range check."""
    status = Status.BAD_RESPONSE


class DeviceIoError(RelaconError, OSError):
    """The transport failed to write or read a report."""
    status = Status.DEVICE_IO


class InternalError(RelaconError):
    """Command formatting overflow or an unexpected backend failure."""
    status = Status.INTERNAL


class NoEntryError(RelaconError, LookupError):
    """A device list is exhausted, or no device matched."""
    status = Status.NO_ENTRY

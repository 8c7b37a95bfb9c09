"""
Report codec for the ASCII command protocol.

Every exchange with the board is one fixed 8-byte report::

    [0x01, c0, c1, c2, c3, c4, c5, c6]
     ^id   ^-- ASCII command/response, NUL padded --^

Commands are short ASCII strings ("PI", "SK3", "MK255", ...).  Responses
that carry data are a base-10 integer in the payload.

``Commands`` builds outbound reports for the command vocabulary;
``decode_numeric`` validates and parses inbound ones.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Union

from .errors import (
    ArgumentNullError,
    BadResponseError,
    InternalError,
    InvalidParamError,
)

log = logging.getLogger(__name__)

# =========================================================================
# Constants
# =========================================================================

REPORT_ID_CMD = 1
REPORT_DATA_LEN = 7
REPORT_BUF_LEN = REPORT_DATA_LEN + 1

# Default read timeout for command responses
DEFAULT_TIMEOUT_MS = 500

# Response value ranges (inclusive)
RANGE_U8 = (0, 0xFF)
RANGE_U16 = (0, 0xFFFF)
RANGE_BOOL = (0, 1)
RANGE_DEBOUNCE = (0, 2)
RANGE_WATCHDOG = (0, 3)

# strtol-style: optional leading whitespace and sign, then digits, nothing after
_NUMERIC_RE = re.compile(rb'[ \t\n\v\f\r]*[+-]?[0-9]+')

Buffer = Union[bytearray, memoryview]


# =========================================================================
# Encoding
# =========================================================================

def _fill(payload: bytes, buf: Optional[Buffer]) -> bytes:
    """Lay out report ID + payload + NUL padding, into *buf* if given."""
    report = bytes([REPORT_ID_CMD]) + payload.ljust(REPORT_DATA_LEN, b'\x00')
    if buf is not None:
        if len(buf) != REPORT_BUF_LEN:
            raise InternalError(
                f"Report buffer must be {REPORT_BUF_LEN} bytes, got {len(buf)}"
            )
        buf[:] = report
    return report


def format_command(fmt: str, *args, buf: Optional[Buffer] = None) -> bytes:
    """Format a command into a report.

    Args:
        fmt: %-style format string, e.g. ``"SK%d"``.
        *args: Values for the format string.
        buf: Optional 8-byte scratch buffer to populate in place.

    Returns:
        The 8-byte report.

    Raises:
        InternalError: The formatted command does not fit in the payload or
            is not ASCII.  This is a library fault, not a device error.
    """
    try:
        text = fmt % args
        payload = text.encode('ascii')
    except (TypeError, ValueError) as e:
        log.error("Command formatting failed: %s", e)
        raise InternalError(f"Command formatting failed: {e}") from e

    if len(payload) > REPORT_DATA_LEN:
        log.error("Formatted command %r exceeds report data bounds", text)
        raise InternalError(
            f"Command {text!r} exceeds {REPORT_DATA_LEN} bytes"
        )
    return _fill(payload, buf)


def encode_raw(cmd: Optional[str], buf: Optional[Buffer] = None) -> bytes:
    """Build a report from a caller-supplied ASCII command.

    Raises:
        ArgumentNullError: *cmd* is None.
        InvalidParamError: *cmd* is longer than 7 bytes or not ASCII.
    """
    if cmd is None:
        raise ArgumentNullError("Command must not be None")
    if isinstance(cmd, str):
        if not cmd.isascii():
            raise InvalidParamError(f"Command must be ASCII: {cmd!r}")
        payload = cmd.encode('ascii')
    elif isinstance(cmd, (bytes, bytearray)):
        payload = bytes(cmd)
        if not payload.isascii():
            raise InvalidParamError(f"Command must be ASCII: {cmd!r}")
    else:
        raise InvalidParamError(f"Command must be str or bytes, got {type(cmd).__name__}")

    # A NUL terminates the command on the wire
    payload = payload.split(b'\x00', 1)[0]
    if len(payload) > REPORT_DATA_LEN:
        log.error("Provided command is too long: %r", cmd)
        raise InvalidParamError(
            f"Command {cmd!r} is longer than {REPORT_DATA_LEN} characters"
        )
    return _fill(payload, buf)


class Commands:
    """Builders for the board's command vocabulary.

    Mass relay writes use a zero-padded three-digit value (``MK007``); all
    other numeric arguments are unpadded.  The firmware parser expects
    exactly this.
    """

    @staticmethod
    def read_inputs(buf: Optional[Buffer] = None) -> bytes:
        return format_command("PI", buf=buf)

    @staticmethod
    def relay_write(relay: int, asserted: bool,
                    buf: Optional[Buffer] = None) -> bytes:
        return format_command("SK%d" if asserted else "RK%d", relay, buf=buf)

    @staticmethod
    def relay_read(relay: int, buf: Optional[Buffer] = None) -> bytes:
        return format_command("RPK%d", relay, buf=buf)

    @staticmethod
    def relays_write(value: int, buf: Optional[Buffer] = None) -> bytes:
        return format_command("MK%03u", value, buf=buf)

    @staticmethod
    def relays_read(buf: Optional[Buffer] = None) -> bytes:
        return format_command("PK", buf=buf)

    @staticmethod
    def event_counter(counter: int, clear: bool,
                      buf: Optional[Buffer] = None) -> bytes:
        return format_command("R%c%d", 'C' if clear else 'E', counter, buf=buf)

    @staticmethod
    def debounce_set(config: int, buf: Optional[Buffer] = None) -> bytes:
        return format_command("DB%d", config, buf=buf)

    @staticmethod
    def debounce_get(buf: Optional[Buffer] = None) -> bytes:
        return format_command("DB", buf=buf)

    @staticmethod
    def watchdog_set(config: int, buf: Optional[Buffer] = None) -> bytes:
        return format_command("WD%d", config, buf=buf)

    @staticmethod
    def watchdog_get(buf: Optional[Buffer] = None) -> bytes:
        return format_command("WD", buf=buf)


# =========================================================================
# Decoding
# =========================================================================

def payload_bytes(report: bytes) -> bytes:
    """Return the payload of *report* up to the first NUL."""
    return bytes(report[1:REPORT_BUF_LEN]).split(b'\x00', 1)[0]


def check_report_id(report: bytes) -> None:
    if not report:
        log.error("Received empty report")
        raise BadResponseError("Empty report")
    if report[0] != REPORT_ID_CMD:
        log.error("Received unexpected report ID: %d", report[0])
        raise BadResponseError(f"Unexpected report ID: {report[0]}")


def decode_numeric(report: bytes, minimum: int, maximum: int) -> int:
    """Parse a numeric response report.

    Args:
        report: Report as read from the device (report ID first).
        minimum: Smallest acceptable value.
        maximum: Largest acceptable value.

    Returns:
        The parsed value.

    Raises:
        BadResponseError: Wrong report ID, the payload is not exactly one
            decimal integer, or the value is outside [minimum, maximum].
    """
    check_report_id(report)

    payload = payload_bytes(report)
    # An empty payload is rejected, not read as 0
    if not _NUMERIC_RE.fullmatch(payload):
        log.error("Failed to parse numeric value from response %r", payload)
        raise BadResponseError(f"Unparsable response: {payload!r}")

    value = int(payload.strip(b' \t\n\v\f\r'))
    if not minimum <= value <= maximum:
        log.error("Response out of range: %d", value)
        raise BadResponseError(
            f"Response {value} outside [{minimum}, {maximum}]"
        )
    return value

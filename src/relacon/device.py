"""
Relay controller facade.

``RelaconDevice`` is the operation surface for one open board.  Every
operation follows the same template::

    validate args → encode command → write report → [read report → decode]

Arguments are checked before any I/O, so a rejected call never touches the
device.  Transport failures (timeout, I/O, bad response) leave the board in
whatever state the hardware reached; nothing is retried here.

Not thread-safe: the protocol has no request/response correlation, so
callers must serialise operations on one device.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .backend import BackendDevice
from .errors import ArgumentNullError, InvalidParamError
from .models import DebounceConfig, DeviceDescriptor, WatchdogConfig
from .report import (
    DEFAULT_TIMEOUT_MS,
    RANGE_BOOL,
    RANGE_DEBOUNCE,
    RANGE_U8,
    RANGE_U16,
    RANGE_WATCHDOG,
    REPORT_BUF_LEN,
    Buffer,
    Commands,
    decode_numeric,
    encode_raw,
    payload_bytes,
)

log = logging.getLogger(__name__)


def _check_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParamError(f"{name} must be an integer, got {value!r}")
    return value


def _check_index(value, limit: int, name: str) -> int:
    _check_int(value, name)
    if not 0 <= value < limit:
        log.error("%s index out of range: %d", name, value)
        raise InvalidParamError(f"{name} index {value} outside [0, {limit})")
    return value


class RelaconDevice:
    """An open relay controller.

    Created by ``DeviceManager.open()``; close exactly once (or use as a
    context manager).  Holds its own copy of the device descriptor, so it
    stays valid after the originating ``DeviceList`` is destroyed.
    """

    def __init__(self, handle: BackendDevice, info: DeviceDescriptor,
                 read_timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self._handle: Optional[BackendDevice] = handle
        self._info = info.detached()
        self._report = bytearray(REPORT_BUF_LEN)
        self._read_timeout_ms = read_timeout_ms

    # -- Lifetime ------------------------------------------------------

    @property
    def info(self) -> DeviceDescriptor:
        """Descriptor copy (no locator)."""
        return self._info

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def close(self) -> None:
        """Release the transport handle.  A second call does nothing."""
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        handle.close()
        log.info("Closed %s", self._info)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"<RelaconDevice {self._info} {state}>"

    # -- Report I/O ----------------------------------------------------

    def _require_handle(self) -> BackendDevice:
        if self._handle is None:
            raise ArgumentNullError("Device is closed")
        return self._handle

    def _write_report(self) -> None:
        log.debug("TX %r", payload_bytes(self._report))
        self._require_handle().write_report(bytes(self._report))

    def _read_report(self, timeout_ms: Optional[int]) -> bytes:
        data = self._require_handle().read_report(REPORT_BUF_LEN, timeout_ms)
        report = data[:REPORT_BUF_LEN].ljust(REPORT_BUF_LEN, b'\x00')
        self._report[:] = report
        log.debug("RX %r", payload_bytes(report))
        return report

    def _read_numeric(self, value_range) -> int:
        report = self._read_report(self._read_timeout_ms)
        return decode_numeric(report, *value_range)

    # -- Digital inputs ------------------------------------------------

    def read_inputs(self) -> int:
        """Read the digital input port (bit per input)."""
        self._require_handle()
        Commands.read_inputs(self._report)
        self._write_report()
        return self._read_numeric(RANGE_U8)

    # -- Relays --------------------------------------------------------

    def relay_write(self, relay: int, asserted: bool) -> None:
        """Assert (close) or release (open) a single relay."""
        self._require_handle()
        _check_index(relay, self._info.num_relays, "Relay")
        Commands.relay_write(relay, bool(asserted), self._report)
        self._write_report()

    def relay_read(self, relay: int) -> bool:
        """Return True if the relay is asserted."""
        self._require_handle()
        _check_index(relay, self._info.num_relays, "Relay")
        Commands.relay_read(relay, self._report)
        self._write_report()
        return bool(self._read_numeric(RANGE_BOOL))

    def relays_write(self, value: int) -> None:
        """Set all relays at once (bit per relay)."""
        self._require_handle()
        _check_int(value, "Relay port value")
        if not RANGE_U8[0] <= value <= RANGE_U8[1]:
            raise InvalidParamError(f"Relay port value {value} outside [0, 255]")
        Commands.relays_write(value, self._report)
        self._write_report()

    def relays_read(self) -> int:
        """Read the relay port (bit per relay)."""
        self._require_handle()
        Commands.relays_read(self._report)
        self._write_report()
        return self._read_numeric(RANGE_U8)

    # -- Event counters ------------------------------------------------

    def event_counter_get(self, counter: int, clear: bool = False) -> int:
        """Read an input's event counter, optionally clearing it."""
        self._require_handle()
        _check_index(counter, self._info.num_inputs, "Counter")
        Commands.event_counter(counter, bool(clear), self._report)
        self._write_report()
        return self._read_numeric(RANGE_U16)

    def debounce_set(self, config: Union[DebounceConfig, int]) -> None:
        self._require_handle()
        config = self._coerce(DebounceConfig, config, "Debounce config")
        Commands.debounce_set(int(config), self._report)
        self._write_report()

    def debounce_get(self) -> DebounceConfig:
        self._require_handle()
        Commands.debounce_get(self._report)
        self._write_report()
        return DebounceConfig(self._read_numeric(RANGE_DEBOUNCE))

    # -- Watchdog ------------------------------------------------------

    def watchdog_set(self, config: Union[WatchdogConfig, int]) -> None:
        """Configure the watchdog.

        While enabled, the board opens all relays if no command of any kind
        arrives within the interval.  No keepalives are sent for you.
        """
        self._require_handle()
        config = self._coerce(WatchdogConfig, config, "Watchdog config")
        Commands.watchdog_set(int(config), self._report)
        self._write_report()

    def watchdog_get(self) -> WatchdogConfig:
        self._require_handle()
        Commands.watchdog_get(self._report)
        self._write_report()
        return WatchdogConfig(self._read_numeric(RANGE_WATCHDOG))

    @staticmethod
    def _coerce(enum_cls, value, name: str):
        _check_int(value, name)
        try:
            return enum_cls(value)
        except ValueError as e:
            log.error("%s out of range: %d", name, value)
            raise InvalidParamError(f"{name} out of range: {value}") from e

    # -- Raw passthrough -----------------------------------------------

    def raw_write(self, cmd: Union[str, bytes]) -> None:
        """Send an arbitrary command of at most 7 ASCII characters."""
        self._require_handle()
        encode_raw(cmd, self._report)
        self._write_report()

    def raw_read(self, buf: Optional[Buffer], timeout_ms: Optional[int] = None) -> int:
        """Read one report and copy its payload into *buf*.

        Copies at most ``len(buf)`` bytes, truncating longer payloads; the
        rest of *buf* is NUL-filled, so the result is NUL-terminated only if
        there is room.  Blocks indefinitely unless *timeout_ms* is given.

        Returns:
            Number of payload bytes copied.
        """
        self._require_handle()
        if buf is None:
            raise ArgumentNullError("Output buffer must not be None")
        try:
            view = memoryview(buf).cast('B')
        except TypeError as e:
            raise InvalidParamError(f"Output buffer is not a byte buffer: {e}") from e
        if view.readonly:
            raise InvalidParamError("Output buffer is read-only")

        report = self._read_report(timeout_ms)
        payload = payload_bytes(report)[:len(view)]
        count = len(payload)
        view[:count] = payload
        view[count:] = bytes(len(view) - count)
        return count

    def raw_read_text(self, timeout_ms: Optional[int] = None) -> str:
        """Read one report and return its payload as text."""
        buf = bytearray(REPORT_BUF_LEN - 1)
        count = self.raw_read(buf, timeout_ms)
        return buf[:count].decode('ascii', errors='replace')

"""
HIDAPI backend — report I/O through the OS HID driver.

hidapi hands over whole reports: byte 0 of every buffer is the report ID,
exactly as the board expects.  No interface claiming is required, so this
backend usually works without root or udev rules.

Windows exposes one HID device per top-level collection.  Only the
collection with usage 0x01 carries the command/response reports, so with
``filter_collection_usage`` enabled all other collections are skipped.

Requires: ``pip install hidapi`` (+ ``apt install libhidapi-dev`` on Linux)
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from .backend import Backend, BackendDevice
from .errors import DeviceIoError, DeviceTimeoutError, InternalError
from .models import DeviceStrings, RawDevice

# hidapi is optional ([hid] extra) except on Windows
try:
    import hid as hidapi
    HIDAPI_AVAILABLE = True
except ImportError:
    hidapi = None
    HIDAPI_AVAILABLE = False

log = logging.getLogger(__name__)

# Top-level collection usage of the command/response reports
COMMAND_COLLECTION_USAGE = 0x01


def _new_device() -> Any:
    # hidapi 0.14 uses Device (uppercase), 0.15+ uses device (lowercase)
    DeviceClass = getattr(hidapi, 'device', None) or getattr(hidapi, 'Device', None)
    if DeviceClass is None:
        raise InternalError("hidapi module has neither 'device' nor 'Device' class")
    return DeviceClass()


def _open_path(path: bytes) -> Any:
    """Open a HID device by enumeration path."""
    dev = _new_device()
    try:
        dev.open_path(path)
    except (OSError, ValueError) as e:
        raise InternalError(f"hid open_path({path!r}) failed: {e}") from e
    return dev


class HidApiDevice(BackendDevice):
    """Open hidapi device handle."""

    def __init__(self, dev: Any):
        self._dev = dev

    def write_report(self, report: bytes) -> None:
        try:
            written = self._dev.write(bytes(report))
        except (OSError, ValueError) as e:
            log.error("hid write failed: %s", e)
            raise DeviceIoError(f"hid write failed: {e}") from e
        if written != len(report):
            log.error("hid write failed: wrote %s of %d bytes", written, len(report))
            raise DeviceIoError(f"hid write returned {written}")

    def read_report(self, length: int, timeout_ms: Optional[int]) -> bytes:
        try:
            if timeout_ms is None or timeout_ms < 0:
                data = self._dev.read(length)
            else:
                # hidapi treats a zero timeout as "block forever"
                data = self._dev.read(length, max(timeout_ms, 1))
        except (OSError, ValueError) as e:
            log.error("hid read failed: %s", e)
            raise DeviceIoError(f"hid read failed: {e}") from e
        if not data:
            raise DeviceTimeoutError(f"No report within {timeout_ms} ms")
        return bytes(data)

    def close(self) -> None:
        self._dev.close()


class HidApiBackend(Backend):
    """Backend built on hidapi."""

    def __init__(self, filter_collection_usage: bool = False):
        if not HIDAPI_AVAILABLE:
            raise InternalError(
                "hidapi is not installed. Install with: pip install hidapi\n"
                "Also need libhidapi: apt install libhidapi-dev (Debian/Ubuntu) "
                "or dnf install hidapi-devel (Fedora)"
            )
        self.filter_collection_usage = filter_collection_usage

    @property
    def name(self) -> str:
        return 'hidapi'

    def enumerate(self) -> List[RawDevice]:
        try:
            infos = hidapi.enumerate(0, 0)
        except (OSError, ValueError) as e:
            log.error("hid enumerate() failed: %s", e)
            raise InternalError(f"hid enumerate() failed: {e}") from e
        if infos is None:
            raise InternalError("hid enumerate() returned nothing")

        return [
            RawDevice(
                vid=info.get('vendor_id', 0),
                pid=info.get('product_id', 0),
                target=info.get('path'),
                manufacturer=info.get('manufacturer_string') or "",
                product=info.get('product_string') or "",
                serial_number=info.get('serial_number') or "",
                usage_page=info.get('usage_page', 0),
                usage=info.get('usage', 0),
            )
            for info in infos
        ]

    def is_candidate(self, raw: RawDevice) -> bool:
        if not self.filter_collection_usage:
            return True
        return raw.usage == COMMAND_COLLECTION_USAGE

    def fetch_strings(self, raw: RawDevice) -> DeviceStrings:
        """Re-read string descriptors with a short request.

        hid_enumerate() asks for 512 wide chars (wLength 0x0402); the ADU218
        sees 0x02 and returns only the descriptor header, so its strings
        come back empty.  Opening the device and asking again with a small
        buffer gets the real values.  If the device cannot be opened, the
        enumeration-time strings are kept (empty where absent).
        """
        strings = raw.strings
        if strings.complete:
            return strings

        try:
            dev = _open_path(raw.target)
        except InternalError as e:
            log.warning("Failed to open device %r for querying string descriptors: %s",
                        raw.target, e)
            return strings

        try:
            return DeviceStrings(
                manufacturer=self._get_string(dev.get_manufacturer_string, raw),
                product=self._get_string(dev.get_product_string, raw),
                serial_number=self._get_string(dev.get_serial_number_string, raw),
            )
        finally:
            dev.close()

    @staticmethod
    def _get_string(getter, raw: RawDevice) -> str:
        try:
            value = getter()
        except (OSError, ValueError) as e:
            # No such descriptor; not an error
            log.debug("%04x:%04x: string descriptor unavailable: %s",
                      raw.vid, raw.pid, e)
            return ""
        return value or ""

    def open(self, target: Any) -> BackendDevice:
        dev = _open_path(target)
        try:
            dev.set_nonblocking(0)
        except (OSError, ValueError) as e:
            dev.close()
            raise InternalError(f"hid set_nonblocking failed: {e}") from e
        log.debug("Opened hid device %r", target)
        return HidApiDevice(dev)

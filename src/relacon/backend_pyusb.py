"""
PyUSB backend — raw interrupt transfers through libusb.

Bypasses the OS HID driver: interface 0 is claimed directly (detaching the
kernel's usbhid driver first) and reports are moved with interrupt
transfers on the board's fixed endpoints::

    EP 0x01 OUT — command report
    EP 0x81 IN  — response report

Requires: ``pip install pyusb`` + ``apt install libusb-1.0-0``
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import usb.control
import usb.core
import usb.util

from .backend import STRING_DESCRIPTOR_BUF_LEN, Backend, BackendDevice
from .errors import DeviceIoError, DeviceTimeoutError, InternalError
from .models import DeviceStrings, RawDevice

log = logging.getLogger(__name__)

# pyusb is a hard dep — always True, exported for backend.get_backend_availability()
PYUSB_AVAILABLE = True

# Endpoint addresses
EP_HID_INPUT_REPORT = 0x81
EP_HID_OUTPUT_REPORT = 0x01

USB_INTERFACE = 0

# Interrupt OUT transfers are short; a stalled write should not hang forever
WRITE_TIMEOUT_MS = 1000

# Language ID used when the device has no LANGID table
LANGID_EN_US = 0x0409


def _reattach_kernel_driver(device: Any) -> None:
    try:
        device.attach_kernel_driver(USB_INTERFACE)
    except (NotImplementedError, usb.core.USBError) as e:
        log.debug("Kernel driver re-attach: %s", e)


class PyUsbDevice(BackendDevice):
    """Open pyusb device with interface 0 claimed."""

    def __init__(self, device: Any, reattach: bool = False):
        self._device = device
        self._reattach = reattach

    def write_report(self, report: bytes) -> None:
        try:
            written = self._device.write(
                EP_HID_OUTPUT_REPORT, bytes(report), timeout=WRITE_TIMEOUT_MS,
            )
        except usb.core.USBError as e:
            log.error("Interrupt OUT transfer failed (%s)", e)
            raise DeviceIoError(f"Interrupt OUT transfer failed: {e}") from e
        if written != len(report):
            log.error("Interrupt OUT transfer short: %d of %d bytes",
                      written, len(report))
            raise DeviceIoError(f"Short write: {written} of {len(report)} bytes")

    def read_report(self, length: int, timeout_ms: Optional[int]) -> bytes:
        # libusb: 0 = no timeout
        timeout = 0 if timeout_ms is None or timeout_ms < 0 else max(timeout_ms, 1)
        try:
            data = self._device.read(EP_HID_INPUT_REPORT, length, timeout=timeout)
        except usb.core.USBTimeoutError as e:
            raise DeviceTimeoutError(f"No report within {timeout_ms} ms") from e
        except usb.core.USBError as e:
            log.error("Interrupt IN transfer failed (%s)", e)
            raise DeviceIoError(f"Interrupt IN transfer failed: {e}") from e
        return bytes(data)

    def close(self) -> None:
        try:
            usb.util.release_interface(self._device, USB_INTERFACE)
        except usb.core.USBError as e:
            log.debug("Release interface: %s", e)
        if self._reattach:
            _reattach_kernel_driver(self._device)
        usb.util.dispose_resources(self._device)


class PyUsbBackend(Backend):
    """Backend built on pyusb."""

    @property
    def name(self) -> str:
        return 'pyusb'

    def enumerate(self) -> List[RawDevice]:
        try:
            devices = list(usb.core.find(find_all=True))
        except (usb.core.USBError, usb.core.NoBackendError) as e:
            log.error("usb.core.find() failed: %s", e)
            raise InternalError(f"USB enumeration failed: {e}") from e

        return [
            RawDevice(vid=dev.idVendor, pid=dev.idProduct, target=dev)
            for dev in devices
        ]

    def fetch_strings(self, raw: RawDevice) -> DeviceStrings:
        dev = raw.target
        try:
            langid = self._first_langid(dev)
            return DeviceStrings(
                manufacturer=self._get_string(dev, dev.iManufacturer, langid),
                product=self._get_string(dev, dev.iProduct, langid),
                serial_number=self._get_string(dev, dev.iSerialNumber, langid),
            )
        except usb.core.USBError as e:
            log.error("Failed to fetch device strings for %04x:%04x: %s",
                      raw.vid, raw.pid, e)
            raise InternalError(
                f"String descriptor read failed ({raw.vid:04x}:{raw.pid:04x}): {e}"
            ) from e
        finally:
            usb.util.dispose_resources(dev)

    @staticmethod
    def _first_langid(dev: Any) -> int:
        desc = usb.control.get_descriptor(
            dev, STRING_DESCRIPTOR_BUF_LEN, usb.util.DESC_TYPE_STRING, 0,
        )
        if len(desc) < 4:
            return LANGID_EN_US
        return desc[2] | (desc[3] << 8)

    @staticmethod
    def _get_string(dev: Any, index: int, langid: int) -> str:
        """Read one string descriptor as ASCII.  Index 0 means absent."""
        if not index:
            return ""
        desc = usb.control.get_descriptor(
            dev, STRING_DESCRIPTOR_BUF_LEN, usb.util.DESC_TYPE_STRING, index, langid,
        )
        if len(desc) < 2 or desc[1] != usb.util.DESC_TYPE_STRING:
            raise usb.core.USBError(f"Invalid string descriptor at index {index}")
        length = min(desc[0], len(desc))
        text = bytes(desc[2:length]).decode('utf-16-le', errors='replace')
        return ''.join(c if ord(c) < 0x80 else '?' for c in text)

    def open(self, target: Any) -> BackendDevice:
        reattach = False
        try:
            if target.is_kernel_driver_active(USB_INTERFACE):
                target.detach_kernel_driver(USB_INTERFACE)
                reattach = True
                log.debug("Detached kernel driver from interface %d", USB_INTERFACE)
        except NotImplementedError:
            # Not supported on this platform
            pass
        except usb.core.USBError as e:
            log.debug("Kernel driver detach: %s", e)

        try:
            # Fails if another process already holds the interface
            usb.util.claim_interface(target, USB_INTERFACE)
        except usb.core.USBError as e:
            log.error("Failed to claim interface: %s", e)
            if reattach:
                _reattach_kernel_driver(target)
            usb.util.dispose_resources(target)
            raise InternalError(f"Failed to claim interface: {e}") from e

        return PyUsbDevice(target, reattach=reattach)

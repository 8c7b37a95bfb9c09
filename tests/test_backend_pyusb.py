"""Mock tests for the pyusb backend.

No real USB hardware required — pyusb calls are patched.
"""

from unittest.mock import MagicMock, call, patch

import pytest
import usb.core
import usb.util

from relacon.backend_pyusb import (
    EP_HID_INPUT_REPORT,
    EP_HID_OUTPUT_REPORT,
    USB_INTERFACE,
    WRITE_TIMEOUT_MS,
    PyUsbBackend,
    PyUsbDevice,
)
from relacon.errors import DeviceIoError, DeviceTimeoutError, InternalError
from relacon.models import RawDevice


def _usb_device(vid=0x0A07, pid=218, strings=None) -> MagicMock:
    dev = MagicMock()
    dev.idVendor = vid
    dev.idProduct = pid
    dev.iManufacturer = 1
    dev.iProduct = 2
    dev.iSerialNumber = 3
    dev.strings = strings or {1: "Ontrak", 2: "ADU218", 3: "B02345"}
    return dev


def _string_descriptor(text: str) -> list:
    data = text.encode('utf-16-le')
    return [len(data) + 2, usb.util.DESC_TYPE_STRING] + list(data)


def _get_descriptor(dev, size, desc_type, index, langid=0):
    assert size == 128
    if index == 0:
        return [4, usb.util.DESC_TYPE_STRING, 0x09, 0x04]
    return _string_descriptor(dev.strings[index])


@pytest.fixture
def get_descriptor():
    with patch('relacon.backend_pyusb.usb.control.get_descriptor',
               side_effect=_get_descriptor) as mock:
        yield mock


@pytest.fixture
def dispose():
    with patch('relacon.backend_pyusb.usb.util.dispose_resources') as mock:
        yield mock


# =========================================================================
# Enumeration
# =========================================================================

class TestEnumerate:

    def test_native_order(self):
        devices = [_usb_device(), _usb_device(0x046D, 0xC31C)]
        with patch('relacon.backend_pyusb.usb.core.find', return_value=iter(devices)):
            raw = PyUsbBackend().enumerate()
        assert [(r.vid, r.pid) for r in raw] == [(0x0A07, 218), (0x046D, 0xC31C)]
        assert raw[0].target is devices[0]

    def test_no_backend(self):
        with patch('relacon.backend_pyusb.usb.core.find',
                   side_effect=usb.core.NoBackendError("No backend available")):
            with pytest.raises(InternalError):
                PyUsbBackend().enumerate()

    def test_every_device_is_candidate(self):
        assert PyUsbBackend().is_candidate(RawDevice(1, 2, None, usage=7))

    def test_name(self):
        assert PyUsbBackend().name == 'pyusb'


class TestFetchStrings:

    def test_reads_all_strings(self, get_descriptor, dispose):
        dev = _usb_device()
        strings = PyUsbBackend().fetch_strings(RawDevice(0x0A07, 218, dev))
        assert strings.manufacturer == "Ontrak"
        assert strings.product == "ADU218"
        assert strings.serial_number == "B02345"
        get_descriptor.assert_any_call(dev, 128, usb.util.DESC_TYPE_STRING, 3, 0x0409)
        dispose.assert_called_once_with(dev)

    def test_index_zero_is_absent(self, get_descriptor, dispose):
        dev = _usb_device()
        dev.iSerialNumber = 0
        strings = PyUsbBackend().fetch_strings(RawDevice(0x0A07, 218, dev))
        assert strings.serial_number == ""

    def test_non_ascii_replaced(self, get_descriptor, dispose):
        dev = _usb_device(strings={1: "Café", 2: "ADU218", 3: "1"})
        strings = PyUsbBackend().fetch_strings(RawDevice(0x0A07, 218, dev))
        assert strings.manufacturer == "Caf?"

    def test_read_failure(self, dispose):
        dev = _usb_device()
        with patch('relacon.backend_pyusb.usb.control.get_descriptor',
                   side_effect=usb.core.USBError("Access denied", errno=13)):
            with pytest.raises(InternalError):
                PyUsbBackend().fetch_strings(RawDevice(0x0A07, 218, dev))
        dispose.assert_called_once_with(dev)


# =========================================================================
# Open / close
# =========================================================================

class TestOpen:

    def test_detaches_kernel_driver(self, dispose):
        dev = _usb_device()
        dev.is_kernel_driver_active.return_value = True
        with patch('relacon.backend_pyusb.usb.util.claim_interface') as claim:
            handle = PyUsbBackend().open(dev)
        dev.detach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        claim.assert_called_once_with(dev, USB_INTERFACE)
        assert isinstance(handle, PyUsbDevice)

    def test_no_kernel_driver(self, dispose):
        dev = _usb_device()
        dev.is_kernel_driver_active.return_value = False
        with patch('relacon.backend_pyusb.usb.util.claim_interface'):
            PyUsbBackend().open(dev)
        dev.detach_kernel_driver.assert_not_called()

    def test_detach_unsupported(self, dispose):
        dev = _usb_device()
        dev.is_kernel_driver_active.side_effect = NotImplementedError
        with patch('relacon.backend_pyusb.usb.util.claim_interface') as claim:
            PyUsbBackend().open(dev)
        claim.assert_called_once()

    def test_claim_failure(self, dispose):
        dev = _usb_device()
        dev.is_kernel_driver_active.return_value = False
        with patch('relacon.backend_pyusb.usb.util.claim_interface',
                   side_effect=usb.core.USBError("Resource busy", errno=16)):
            with pytest.raises(InternalError):
                PyUsbBackend().open(dev)
        dispose.assert_called_once_with(dev)
        dev.attach_kernel_driver.assert_not_called()

    def test_claim_failure_reattaches_kernel_driver(self, dispose):
        dev = _usb_device()
        dev.is_kernel_driver_active.return_value = True
        with patch('relacon.backend_pyusb.usb.util.claim_interface',
                   side_effect=usb.core.USBError("Resource busy", errno=16)):
            with pytest.raises(InternalError):
                PyUsbBackend().open(dev)
        dev.detach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        dev.attach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        dispose.assert_called_once_with(dev)

    def test_claim_failure_reattach_error_ignored(self, dispose):
        dev = _usb_device()
        dev.is_kernel_driver_active.return_value = True
        dev.attach_kernel_driver.side_effect = usb.core.USBError("No such device")
        with patch('relacon.backend_pyusb.usb.util.claim_interface',
                   side_effect=usb.core.USBError("Resource busy", errno=16)):
            with pytest.raises(InternalError):
                PyUsbBackend().open(dev)
        dispose.assert_called_once_with(dev)

    def test_close_reattaches(self, dispose):
        dev = _usb_device()
        with patch('relacon.backend_pyusb.usb.util.release_interface') as release:
            PyUsbDevice(dev, reattach=True).close()
        release.assert_called_once_with(dev, USB_INTERFACE)
        dev.attach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        dispose.assert_called_once_with(dev)

    def test_close_without_reattach(self, dispose):
        dev = _usb_device()
        with patch('relacon.backend_pyusb.usb.util.release_interface'):
            PyUsbDevice(dev).close()
        dev.attach_kernel_driver.assert_not_called()


# =========================================================================
# Report I/O
# =========================================================================

class TestReportIo:

    def test_write_out_endpoint(self):
        dev = MagicMock()
        dev.write.return_value = 8
        PyUsbDevice(dev).write_report(b'\x01SK1\x00\x00\x00\x00')
        dev.write.assert_called_once_with(
            EP_HID_OUTPUT_REPORT, b'\x01SK1\x00\x00\x00\x00', timeout=WRITE_TIMEOUT_MS,
        )

    def test_short_write(self):
        dev = MagicMock()
        dev.write.return_value = 3
        with pytest.raises(DeviceIoError):
            PyUsbDevice(dev).write_report(b'\x01SK1\x00\x00\x00\x00')

    def test_write_error(self):
        dev = MagicMock()
        dev.write.side_effect = usb.core.USBError("Pipe error", errno=32)
        with pytest.raises(DeviceIoError):
            PyUsbDevice(dev).write_report(b'\x01SK1\x00\x00\x00\x00')

    def test_read_in_endpoint(self):
        dev = MagicMock()
        dev.read.return_value = bytearray(b'\x011\x00\x00\x00\x00\x00\x00')
        data = PyUsbDevice(dev).read_report(8, 500)
        assert data == b'\x011\x00\x00\x00\x00\x00\x00'
        assert dev.read.call_args == call(EP_HID_INPUT_REPORT, 8, timeout=500)

    def test_read_indefinite(self):
        dev = MagicMock()
        dev.read.return_value = bytearray(b'\x010')
        PyUsbDevice(dev).read_report(8, None)
        PyUsbDevice(dev).read_report(8, -1)
        assert [c.kwargs['timeout'] for c in dev.read.call_args_list] == [0, 0]

    def test_read_timeout(self):
        dev = MagicMock()
        dev.read.side_effect = usb.core.USBTimeoutError("Operation timed out", errno=110)
        with pytest.raises(DeviceTimeoutError):
            PyUsbDevice(dev).read_report(8, 500)

    def test_read_io_error(self):
        dev = MagicMock()
        dev.read.side_effect = usb.core.USBError("No such device", errno=19)
        with pytest.raises(DeviceIoError):
            PyUsbDevice(dev).read_report(8, 500)

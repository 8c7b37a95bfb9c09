"""
relacon - USB relay / digital I/O controller library

Drives Relacon and OnTrak ADU208/ADU218 boards through their 8-byte HID
report protocol, using either hidapi or pyusb as the transport.

Features:
- Relay assert/release, single and whole-port reads and writes
- Digital input port and per-input event counters
- Debounce and watchdog configuration
- Raw command passthrough

Usage:
    from relacon import DeviceManager

    with DeviceManager() as manager:
        for info in manager.list_devices():
            print(info)

        with manager.open() as dev:
            dev.relays_write(0b00000101)
            print(dev.relays_read())
"""

from relacon.__version__ import __version__

# Core exports
from relacon.backend import Backend, BackendDevice, create_backend, get_backend_availability
from relacon.capabilities import DeviceCapabilities
from relacon.conf import Settings
from relacon.device import RelaconDevice
from relacon.device_list import DeviceList
from relacon.errors import (
    ArgumentNullError,
    BadResponseError,
    DeviceIoError,
    DeviceTimeoutError,
    InternalError,
    InvalidParamError,
    NoEntryError,
    OutOfMemoryError,
    RelaconError,
    Status,
)
from relacon.manager import DeviceManager
from relacon.models import DebounceConfig, DeviceDescriptor, WatchdogConfig

__all__ = [
    # Version
    "__version__",
    # Core
    "DeviceManager",
    "DeviceList",
    "DeviceDescriptor",
    "RelaconDevice",
    "DebounceConfig",
    "WatchdogConfig",
    "DeviceCapabilities",
    "Settings",
    # Backends
    "Backend",
    "BackendDevice",
    "create_backend",
    "get_backend_availability",
    # Errors
    "Status",
    "RelaconError",
    "ArgumentNullError",
    "InvalidParamError",
    "OutOfMemoryError",
    "DeviceTimeoutError",
    "BadResponseError",
    "DeviceIoError",
    "InternalError",
    "NoEntryError",
]

"""
Relacon models - plain data classes shared by the backends, the enumerator
and the device facade.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Optional

from .errors import InvalidParamError

if TYPE_CHECKING:
    from .device_list import DeviceList


# =============================================================================
# Device configuration enums
# =============================================================================

class DebounceConfig(IntEnum):
    """Event counter debounce window."""
    MS_10 = 0
    MS_1 = 1
    US_100 = 2


class WatchdogConfig(IntEnum):
    """Watchdog interval.  On expiry the board opens all relays."""
    OFF = 0
    SEC_1 = 1
    SEC_10 = 2
    MIN_1 = 3


# =============================================================================
# Backend enumeration entries
# =============================================================================

@dataclass
class DeviceStrings:
    """USB string descriptors.  Absent descriptors are empty strings."""
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.manufacturer and self.product and self.serial_number)


@dataclass
class RawDevice:
    """One entry from a backend's native device enumeration."""
    vid: int
    pid: int
    target: Any                 # hidapi path (bytes) or pyusb Device
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""
    usage_page: int = 0         # HID top-level collection (hidapi only)
    usage: int = 0

    @property
    def strings(self) -> DeviceStrings:
        return DeviceStrings(self.manufacturer, self.product, self.serial_number)


# =============================================================================
# Enumerated devices
# =============================================================================

class Locator:
    """Opaque handle used to open an enumerated device.

    Only valid while the DeviceList that produced it is alive.  Destroying
    the list drops the backend target, so a stale locator can never reach
    the backend.
    """

    __slots__ = ('_owner', '_target')

    def __init__(self, owner: 'DeviceList', target: Any):
        self._owner = owner
        self._target = target

    @property
    def valid(self) -> bool:
        return self._target is not None and self._owner.alive

    def resolve(self) -> Any:
        """Return the backend target.

        Raises:
            InvalidParamError: The originating device list was destroyed.
        """
        if not self.valid:
            raise InvalidParamError("Locator refers to a destroyed device list")
        return self._target

    def invalidate(self) -> None:
        self._target = None

    def __repr__(self) -> str:
        return f"Locator(valid={self.valid})"


@dataclass(frozen=True)
class DeviceDescriptor:
    """Information about a detected relay controller."""
    vid: int
    pid: int
    serial_number: str = ""
    manufacturer: str = ""
    product: str = ""
    locator: Optional[Locator] = None
    num_relays: int = 0
    num_inputs: int = 0

    def matches(self, vid: int = 0, pid: int = 0,
                serial_number: Optional[str] = None) -> bool:
        """Check identity filters.  Zero / None / "" match anything."""
        return ((not vid or vid == self.vid)
                and (not pid or pid == self.pid)
                and (not serial_number or serial_number == self.serial_number))

    def detached(self) -> 'DeviceDescriptor':
        """Copy without the locator, safe to keep after the list is gone."""
        return DeviceDescriptor(
            vid=self.vid,
            pid=self.pid,
            serial_number=self.serial_number,
            manufacturer=self.manufacturer,
            product=self.product,
            locator=None,
            num_relays=self.num_relays,
            num_inputs=self.num_inputs,
        )

    def __str__(self) -> str:
        name = self.product or "Relay controller"
        serial = f" [{self.serial_number}]" if self.serial_number else ""
        return f"{name} ({self.vid:04x}:{self.pid:04x}){serial}"

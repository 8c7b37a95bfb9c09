"""
Transport backend contract and factory.

A backend gives access to relay controllers through one USB library:

  • ``HidApiBackend`` (``backend_hidapi``) — HID reports via hidapi.  Report
    ID handling follows the platform's HID report semantics.
  • ``PyUsbBackend`` (``backend_pyusb``) — raw interrupt transfers via pyusb
    (libusb) on fixed endpoints.

Both satisfy the same ``Backend`` / ``BackendDevice`` contract, so the
enumerator and the device facade never know which one is in use.  Tests
inject a simulated backend.

Usage::

    from relacon.backend import create_backend

    backend = create_backend()            # per Settings.backend
    backend = create_backend('hidapi')    # explicit
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .errors import InternalError, InvalidParamError

if TYPE_CHECKING:
    from .conf import Settings
    from .models import DeviceStrings, RawDevice

log = logging.getLogger(__name__)

BACKEND_HIDAPI = 'hidapi'
BACKEND_PYUSB = 'pyusb'
BACKEND_NAMES = (BACKEND_HIDAPI, BACKEND_PYUSB)

# Length used for string descriptor requests.  The ADU218 firmware treats
# wLength as 8 bits, so anything above 255 comes back as an empty string.
STRING_DESCRIPTOR_BUF_LEN = 128


# =========================================================================
# Contract
# =========================================================================

class BackendDevice(ABC):
    """An open device handle — one report in, one report out."""

    @abstractmethod
    def write_report(self, report: bytes) -> None:
        """Send one report (report ID first).  Blocks until sent.

        Raises:
            DeviceIoError: The transfer failed or was short.
        """

    @abstractmethod
    def read_report(self, length: int, timeout_ms: Optional[int]) -> bytes:
        """Receive one report (report ID first).

        Args:
            length: Report buffer size.
            timeout_ms: Milliseconds to wait; None or negative blocks
                indefinitely.

        Raises:
            DeviceTimeoutError: Nothing arrived in time.
            DeviceIoError: The transfer failed.
        """

    @abstractmethod
    def close(self) -> None:
        """Release OS resources.  Called at most once."""


class Backend(ABC):
    """USB library wrapper: enumeration, string descriptors, open."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier: 'hidapi' or 'pyusb'."""

    @abstractmethod
    def enumerate(self) -> List['RawDevice']:
        """Return the OS's raw device list in native order.

        Raises:
            InternalError: The library's enumeration call failed.
        """

    def is_candidate(self, raw: 'RawDevice') -> bool:
        """Whether *raw* may carry the command/response collection."""
        return True

    @abstractmethod
    def fetch_strings(self, raw: 'RawDevice') -> 'DeviceStrings':
        """Read manufacturer/product/serial through a short-lived open.

        Absent descriptors are returned as empty strings.

        Raises:
            InternalError: The device could not be opened or read.
        """

    @abstractmethod
    def open(self, target: Any) -> BackendDevice:
        """Open the device behind an enumeration target.

        Raises:
            InternalError: The device could not be opened or claimed.
        """

    def close(self) -> None:
        """Release backend-global resources."""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


# =========================================================================
# Factory
# =========================================================================

def get_backend_availability() -> Dict[str, bool]:
    """Check which USB libraries are installed.

    Returns dict with keys: hidapi, pyusb — each True/False.
    """
    try:
        from .backend_hidapi import HIDAPI_AVAILABLE
    except ImportError:
        HIDAPI_AVAILABLE = False
    try:
        from .backend_pyusb import PYUSB_AVAILABLE
    except ImportError:
        PYUSB_AVAILABLE = False
    return {BACKEND_HIDAPI: HIDAPI_AVAILABLE, BACKEND_PYUSB: PYUSB_AVAILABLE}


def create_backend(name: Optional[str] = None,
                   settings: Optional['Settings'] = None) -> Backend:
    """Build a backend by name, or the one configured in *settings*.

    Raises:
        InvalidParamError: Unknown backend name.
        InternalError: The backend's library is not installed.
    """
    if settings is None:
        from .conf import Settings
        settings = Settings.load()
    name = (name or settings.backend).lower()

    if name not in BACKEND_NAMES:
        raise InvalidParamError(
            f"Unknown backend {name!r} (expected one of {', '.join(BACKEND_NAMES)})"
        )

    if not get_backend_availability()[name]:
        raise InternalError(
            f"{name} is not installed. Install with: pip install {name}"
        )

    if name == BACKEND_HIDAPI:
        from .backend_hidapi import HidApiBackend
        backend: Backend = HidApiBackend(
            filter_collection_usage=settings.filter_collection_usage,
        )
    else:
        from .backend_pyusb import PyUsbBackend
        backend = PyUsbBackend()

    log.debug("Using %s backend", backend.name)
    return backend

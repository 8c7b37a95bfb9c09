"""
Device manager — the library context.

Owns one transport backend for its lifetime and hands out device lists and
open devices::

    from relacon import DeviceManager

    with DeviceManager() as manager:
        with manager.open(vid=0x1209, pid=0xFA70) as dev:
            dev.relay_write(3, True)
            print(dev.read_inputs())
"""

from __future__ import annotations

import logging
from typing import Optional

from .backend import Backend, create_backend
from .conf import Settings
from .device import RelaconDevice
from .device_list import DeviceList
from .errors import ArgumentNullError, NoEntryError
from .models import DeviceDescriptor

log = logging.getLogger(__name__)


class DeviceManager:
    """Entry point for enumerating and opening relay controllers."""

    def __init__(self, backend: Optional[Backend] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings if settings is not None else Settings.load()
        self._backend: Optional[Backend] = (
            backend if backend is not None
            else create_backend(settings=self.settings)
        )

    @property
    def backend(self) -> Backend:
        if self._backend is None:
            raise ArgumentNullError("Device manager is closed")
        return self._backend

    def list_devices(self, vid: int = 0, pid: int = 0,
                     serial_number: Optional[str] = None) -> DeviceList:
        """Enumerate supported devices.  The caller must destroy the list."""
        return DeviceList.create(self.backend, vid, pid, serial_number)

    def open(self, vid: int = 0, pid: int = 0,
             serial_number: Optional[str] = None) -> RelaconDevice:
        """Open the first device matching the filter (0/None match any).

        Raises:
            NoEntryError: No matching device.
            InternalError: The device could not be opened.
        """
        devices = self.list_devices(vid, pid, serial_number)
        try:
            try:
                info = devices.get_next()
            except NoEntryError:
                log.error("No matching device found")
                raise NoEntryError(
                    f"No device matching vid={vid:04x} pid={pid:04x} "
                    f"serial={serial_number!r}"
                ) from None
            return self._open_info(info)
        finally:
            devices.destroy()

    def open_descriptor(self, info: DeviceDescriptor) -> RelaconDevice:
        """Open an enumerated device.

        While the originating list is alive the descriptor's locator is
        used.  Afterwards the device is found again by the descriptor's own
        vid/pid/serial; the stale locator is never touched.
        """
        if info is None:
            raise ArgumentNullError("Device descriptor must not be None")
        if info.locator is not None and info.locator.valid:
            return self._open_info(info)
        log.debug("Locator for %s is stale, re-enumerating", info)
        return self.open(info.vid, info.pid, info.serial_number or None)

    def _open_info(self, info: DeviceDescriptor) -> RelaconDevice:
        # Copy everything needed before the list goes away
        target = info.locator.resolve()
        handle = self.backend.open(target)
        dev = RelaconDevice(handle, info, self.settings.read_timeout_ms)
        log.info("Opened %s via %s", dev.info, self.backend.name)
        return dev

    def close(self) -> None:
        """Release the backend.  Open devices are not closed."""
        if self._backend is None:
            return
        backend, self._backend = self._backend, None
        backend.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

"""
Device enumeration.

``DeviceList.create()`` walks a backend's raw device list and keeps the
entries that are supported relay controllers::

    raw device ──► capability lookup ──► identity filter ──► collection
                   (unknown: skip)       (vid/pid)           filter
                                                                │
    DeviceDescriptor ◄── serial filter ◄── string descriptors ◄─┘
                                           (failure: skip)

The list is a single-pass cursor.  It owns the backend's enumeration
snapshot, and every descriptor's ``locator`` is valid only until the list
is destroyed.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterator, List, Optional

from . import capabilities
from .backend import Backend
from .errors import NoEntryError, OutOfMemoryError, RelaconError
from .models import DeviceDescriptor, Locator, RawDevice

log = logging.getLogger(__name__)


class DeviceList:
    """Ordered, single-pass list of detected relay controllers.

    Usage::

        with DeviceList.create(backend) as devices:
            for info in devices:
                print(info)
    """

    def __init__(self, backend: Backend):
        self._backend = backend
        self._raw: List[RawDevice] = []
        self._entries: List[DeviceDescriptor] = []
        self._locators: List[Locator] = []
        self._cursor = 0
        self._alive = True

    # -- Construction --------------------------------------------------

    @classmethod
    def create(cls, backend: Backend, vid: int = 0, pid: int = 0,
               serial_number: Optional[str] = None) -> 'DeviceList':
        """Enumerate supported devices matching the identity filter.

        Args:
            backend: Transport backend to enumerate with.
            vid: Vendor ID to match, or 0 for any.
            pid: Product ID to match, or 0 for any.
            serial_number: Serial number to match, or None/"" for any.

        Raises:
            InternalError: The backend's enumeration call failed.
            OutOfMemoryError: Allocation failed; no partial list survives.
        """
        devices = cls(backend)
        try:
            devices._raw = backend.enumerate()
            for raw in devices._raw:
                devices._add(raw, vid, pid, serial_number)
        except MemoryError as e:
            log.error("Out of memory. Bailing device list creation")
            devices.destroy()
            raise OutOfMemoryError("Out of memory during enumeration") from e

        log.debug("Found %d device(s) via %s", len(devices._entries), backend.name)
        return devices

    def _add(self, raw: RawDevice, vid: int, pid: int,
             serial_number: Optional[str]) -> None:
        caps = capabilities.query(raw.vid, raw.pid)
        if caps is None:
            log.debug("Skipping unrecognized device %04x:%04x", raw.vid, raw.pid)
            return

        # Filter on vid/pid before opening anything; serial needs the strings
        if not DeviceDescriptor(raw.vid, raw.pid).matches(vid, pid):
            return

        if not self._backend.is_candidate(raw):
            log.debug("Skipping potential relacon device %04x:%04x with usage %02x",
                      raw.vid, raw.pid, raw.usage)
            return

        try:
            strings = self._backend.fetch_strings(raw)
        except OutOfMemoryError:
            raise
        except RelaconError as e:
            # The device may be in use or otherwise inaccessible; keep going
            log.warning("Failed to fetch device strings for device %04x:%04x: %s",
                        raw.vid, raw.pid, e)
            return

        info = DeviceDescriptor(
            vid=raw.vid,
            pid=raw.pid,
            serial_number=strings.serial_number,
            manufacturer=strings.manufacturer,
            product=strings.product,
            num_relays=caps.num_relays,
            num_inputs=caps.num_inputs,
        )
        if not info.matches(vid, pid, serial_number):
            return

        locator = Locator(self, raw.target)
        self._locators.append(locator)
        self._entries.append(replace(info, locator=locator))
        log.debug("Found %s %04x:%04x [%s]", caps.name, raw.vid, raw.pid,
                  strings.serial_number)

    # -- Iteration -----------------------------------------------------

    def get_next(self) -> DeviceDescriptor:
        """Return the next descriptor.

        Raises:
            NoEntryError: The list is exhausted or destroyed.
        """
        if not self._alive or self._cursor >= len(self._entries):
            raise NoEntryError("No more devices in list")
        entry = self._entries[self._cursor]
        self._cursor += 1
        return entry

    def __iter__(self) -> Iterator[DeviceDescriptor]:
        while True:
            try:
                yield self.get_next()
            except NoEntryError:
                return

    def __len__(self) -> int:
        return len(self._entries)

    # -- Lifetime ------------------------------------------------------

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def backend(self) -> Backend:
        return self._backend

    def destroy(self) -> None:
        """Release the enumeration snapshot and invalidate all locators."""
        if not self._alive:
            return
        self._alive = False
        for locator in self._locators:
            locator.invalidate()
        self._locators.clear()
        self._entries.clear()
        self._raw = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.destroy()

    def __repr__(self) -> str:
        state = f"{len(self._entries)} devices" if self._alive else "destroyed"
        return f"<DeviceList {state}>"

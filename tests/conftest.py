"""Shared fixtures built on the fakes in ``fakes.py``."""

import pytest
from fakes import FakeBackend, FakeBoard, raw_for

from relacon.capabilities import PID_ADU218, VID_ONTRAK
from relacon.conf import Settings


@pytest.fixture
def board():
    return FakeBoard()


@pytest.fixture
def backend(board):
    """Backend with one Relacon, one ADU218, and one unsupported device."""
    return FakeBackend([
        raw_for(board),
        raw_for(FakeBoard("A218"), VID_ONTRAK, PID_ADU218),
        raw_for(FakeBoard("KBD"), 0x046D, 0xC31C),
    ])


@pytest.fixture
def settings():
    return Settings(backend='pyusb', read_timeout_ms=500,
                    filter_collection_usage=False)

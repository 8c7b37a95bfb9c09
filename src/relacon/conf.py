"""Settings and config persistence for relacon.

Config is stored at ~/.config/relacon/config.json (XDG-compliant)::

    {
      "backend": "pyusb",
      "read_timeout_ms": 500,
      "filter_collection_usage": false
    }

Environment variables override the file:

    RELACON_BACKEND      hidapi | pyusb
    RELACON_TIMEOUT_MS   response read timeout in milliseconds

Usage:
    from relacon.conf import Settings

    settings = Settings.load()
    settings.backend            # 'hidapi' or 'pyusb'
    settings.read_timeout_ms    # 500

    # Low-level config access
    from relacon.conf import load_config, save_config
"""
from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from typing import Mapping, Optional

from .backend import BACKEND_HIDAPI, BACKEND_NAMES, BACKEND_PYUSB
from .report import DEFAULT_TIMEOUT_MS

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'relacon')
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')

ENV_BACKEND = 'RELACON_BACKEND'
ENV_TIMEOUT_MS = 'RELACON_TIMEOUT_MS'

_IS_WINDOWS = sys.platform == 'win32'


# =========================================================================
# Low-level config persistence
# =========================================================================

def load_config() -> dict:
    """Load user config from disk. Returns empty dict on missing/corrupt file."""
    try:
        with open(CONFIG_PATH, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}
    return config if isinstance(config, dict) else {}


def save_config(config: dict):
    """Save user config to disk."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, 'w') as f:
        json.dump(config, f, indent=2)


# =========================================================================
# Settings
# =========================================================================

def default_backend() -> str:
    """hidapi reads ADU218 strings correctly on Windows; libusb elsewhere."""
    return BACKEND_HIDAPI if _IS_WINDOWS else BACKEND_PYUSB


@dataclass
class Settings:
    """Library settings.

    ``filter_collection_usage`` drops HID collections other than the
    command/response one; only needed where the OS splits collections into
    separate devices (Windows).
    """
    backend: str = field(default_factory=default_backend)
    read_timeout_ms: int = DEFAULT_TIMEOUT_MS
    filter_collection_usage: bool = _IS_WINDOWS

    @classmethod
    def load(cls, config: Optional[Mapping] = None,
             environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Merge defaults <- config file <- environment."""
        if config is None:
            config = load_config()
        if environ is None:
            environ = os.environ

        settings = cls()
        settings._apply('backend', config.get('backend'))
        settings._apply('read_timeout_ms', config.get('read_timeout_ms'))
        settings._apply('filter_collection_usage',
                        config.get('filter_collection_usage'))
        settings._apply('backend', environ.get(ENV_BACKEND))
        settings._apply('read_timeout_ms', environ.get(ENV_TIMEOUT_MS))
        return settings

    def _apply(self, key: str, value) -> None:
        """Set one field from untrusted input, keeping the old value if invalid."""
        if value is None or value == "":
            return
        if key == 'backend':
            name = str(value).lower()
            if name in BACKEND_NAMES:
                self.backend = name
                return
        elif key == 'read_timeout_ms':
            try:
                self.read_timeout_ms = int(value)
                return
            except (TypeError, ValueError):
                pass
        elif key == 'filter_collection_usage':
            if isinstance(value, bool):
                self.filter_collection_usage = value
                return
        log.warning("Ignoring invalid %s setting: %r", key, value)

    def save(self) -> None:
        """Persist to the config file, keeping unrelated keys."""
        config = load_config()
        config.update(asdict(self))
        save_config(config)

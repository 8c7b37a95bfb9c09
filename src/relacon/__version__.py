"""relacon version information."""

__version__ = "0.3.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Initial release: pyusb backend, relay/input/event counter commands
# 0.2.0 - hidapi backend, collection usage filter for Windows, string
#         descriptor re-read for ADU218 firmware
# 0.3.0 - Strict numeric response parsing, distinct timeout errors, JSON
#         settings with environment overrides

"""
Capability table for supported relay controllers.

Supported devices:
- OnTrak ADU208:     VID=0x0A07, PID=208    (8 relays, 8 inputs)
- OnTrak ADU218:     VID=0x0A07, PID=218    (8 relays, 8 inputs)
- Relacon:           VID=0x1209, PID=0xFA70 (8 relays, 8 inputs)

Any other VID:PID is ignored during enumeration.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

VID_ONTRAK = 0x0A07
VID_PIDCODES = 0x1209

PID_ADU200 = 200
PID_ADU208 = 208
PID_ADU218 = 218
PID_RELACON = 0xFA70


@dataclass(frozen=True)
class DeviceCapabilities:
    """What a supported board offers."""
    num_relays: int
    num_inputs: int
    name: str = ""


# ADU200 (4 relays, 4 inputs) has not been tested and is deliberately absent.
SUPPORTED_DEVICES: Mapping[Tuple[int, int], DeviceCapabilities] = MappingProxyType({
    (VID_ONTRAK, PID_ADU208): DeviceCapabilities(8, 8, "ADU208"),
    (VID_ONTRAK, PID_ADU218): DeviceCapabilities(8, 8, "ADU218"),
    (VID_PIDCODES, PID_RELACON): DeviceCapabilities(8, 8, "Relacon"),
})


def query(vid: int, pid: int) -> Optional[DeviceCapabilities]:
    """Return capabilities for a VID:PID, or None if unsupported."""
    return SUPPORTED_DEVICES.get((vid, pid))

"""
LIFX API-level models.

This module contains models that belong to the api layer:
- LifxDevice, LightDevice (a discovered endpoint, identified by its hardware address)
- FirmwareVersion
- LightSnapshot (everything resolved about one light at one moment)
All of them are immutable; a refresh produces a new value.
"""

import time
from dataclasses import dataclass, field, replace
from typing import NamedTuple, Optional, Self, TYPE_CHECKING

from ..color import HSBK
from ..exceptions import LifxValidationError
from ..io import ClientConst

if TYPE_CHECKING:
    from .products import Product


class FirmwareVersion(NamedTuple):
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True)
class LifxDevice:
    """Represents a LIFX device found on the network"""
    host: str
    mac: bytes
    port: int = ClientConst.PORT
    service: int = 1
    last_seen: float = field(default_factory=time.time)

    def __post_init__(self):
        if len(self.mac) != 8:
            raise LifxValidationError(f"Hardware address must be 8 bytes, got {len(self.mac)}")

    @classmethod
    def from_mac_address(cls, host: str, mac_address: str, **kwargs) -> Self:
        """Build from a "d0:73:d5:01:02:03" style address"""
        mac = bytes(int(part, 16) for part in mac_address.split(':'))
        return cls(host=host, mac=mac.ljust(8, b'\x00'), **kwargs)

    @property
    def mac_address(self) -> str:
        return ':'.join(f'{b:02x}' for b in self.mac[:6])

    @property
    def serial(self) -> str:
        return self.mac[:6].hex()

    @property
    def addr(self) -> tuple[str, int]:
        return (self.host, self.port)

    def seen(self, host: str, port: int, timestamp: Optional[float] = None) -> Self:
        """A copy refreshed from a new service announcement"""
        return replace(self, host=host, port=port, last_seen=timestamp if timestamp is not None else time.time())


@dataclass(frozen=True)
class LightDevice(LifxDevice):
    """A LIFX device that is a colour capable light"""
    pass


def extended_multizone_supported(product: Optional["Product"], firmware: FirmwareVersion, exact: bool = False) -> bool:
    """
    Whether a light accepts the extended multizone messages.

    The product must be multizone and declare a minimum firmware. Firmware at or
    above it qualifies; with exact=True only that very version does.
    """
    if product is None or not product.features.multizone:
        return False
    minimum = product.features.min_ext_mz_firmware
    if minimum is None:
        return False
    if exact:
        return firmware == minimum
    return firmware >= minimum


@dataclass(frozen=True)
class LightSnapshot:
    """A light's label, power, colour, firmware, product and zones, resolved together"""
    device: LightDevice
    label: str
    power: bool
    color: HSBK
    firmware: FirmwareVersion
    vendor: int
    product_id: int
    product: Optional["Product"] = None
    zones: Optional[tuple[HSBK, ...]] = None
    extended_multizone: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def multizone(self) -> bool:
        return self.product is not None and self.product.features.multizone

    @property
    def zone_count(self) -> int:
        return len(self.zones) if self.zones else 0

    @property
    def mac_address(self) -> str:
        return self.device.mac_address

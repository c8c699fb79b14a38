"""
Color and zone model.

This module contains the pure value types shared by every layer:
- HSBK, the Hue/Saturation/Brightness/Kelvin tuple carried on the wire
- ZoneRange, an inclusive run of zones on a multizone light
- The zone spreading algorithm that maps N colors onto M zones
"""

import colorsys
import struct
from dataclasses import dataclass
from typing import Self, Sequence

from .exceptions import LifxValidationError


HSBK_SIZE = 8
UINT16_MAX = 0xFFFF


@dataclass(frozen=True)
class HSBK:
    """A color as sent to and received from a light. Every field is 0-65535."""
    hue: int
    saturation: int
    brightness: int
    kelvin: int

    def __post_init__(self):
        for name in ("hue", "saturation", "brightness", "kelvin"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= UINT16_MAX:
                raise LifxValidationError(f"{name.capitalize()} must be between 0 and {UINT16_MAX}, received {value}")

    @classmethod
    def from_rgb(cls, r: int, g: int, b: int, kelvin: int) -> Self:
        """Convert 8-bit RGB to HSBK. RGB has no colour temperature, so kelvin is passed through."""
        for name, value in (("R", r), ("G", g), ("B", b)):
            if not 0 <= value <= 255:
                raise LifxValidationError(f"{name} must be between 0 and 255, received {value}")
        h, l, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
        return cls(
            hue=int(round(h * 0x10000)) % 0x10000,
            saturation=int(round(s * UINT16_MAX)),
            brightness=int(round(l * UINT16_MAX)),
            kelvin=kelvin,
        )

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> Self:
        return cls(*struct.unpack_from('<HHHH', data, offset))

    def to_bytes(self) -> bytes:
        return struct.pack('<HHHH', self.hue, self.saturation, self.brightness, self.kelvin)


@dataclass(frozen=True)
class ZoneRange:
    """Inclusive zone index interval [start, end]"""
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0:
            raise LifxValidationError(f"Zone start index must not be negative, received {self.start}")
        if self.end < self.start:
            raise LifxValidationError(f"Zone end index {self.end} is before start index {self.start}")

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __iter__(self):
        return iter(range(self.start, self.end + 1))


def zone_runs(color_count: int, zone_count: int) -> list[ZoneRange]:
    """
    Partition zones [0, zone_count) into color_count contiguous runs.

    Each run is zone_count // color_count long, and the last run absorbs the
    remainder so that every zone is covered exactly once.
    """
    if color_count < 1:
        raise LifxValidationError("At least one color is required")
    if zone_count < color_count:
        raise LifxValidationError(f"Cannot spread {color_count} colors over {zone_count} zones")
    run = zone_count // color_count
    runs = [ZoneRange(i * run, (i + 1) * run - 1) for i in range(color_count - 1)]
    runs.append(ZoneRange((color_count - 1) * run, zone_count - 1))
    return runs


def spread_colors(colors: Sequence[HSBK], zone_count: int) -> list[HSBK]:
    """Expand colors into a full per-zone palette, in input order."""
    palette: list[HSBK] = []
    for color, zones in zip(colors, zone_runs(len(colors), zone_count)):
        palette.extend([color] * len(zones))
    return palette

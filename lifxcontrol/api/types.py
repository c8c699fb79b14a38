"""
API-level type definitions.

This module contains types and enums that belong to the API layer:
- Zone application modes and service identifiers
- Constants used by the API layer
"""

from enum import IntEnum


class ZoneApply(IntEnum):
    """How a SetColorZones request is applied"""
    NO_APPLY = 0    # buffer the change until a later APPLY
    APPLY = 1
    APPLY_ONLY = 2  # ignore the colour, apply anything buffered


class Service(IntEnum):
    UDP = 1
    RESERVED1 = 2
    RESERVED2 = 3
    RESERVED3 = 4
    RESERVED4 = 5


# API-level constants
class Const:
    """API-level constants"""
    # Set operations accept this colour temperature range
    MIN_KELVIN = 2500
    MAX_KELVIN = 9000

    # Transition durations are u32 milliseconds
    MAX_DURATION_MS = 0xFFFFFFFF

    # Power levels
    POWER_ON = 65535
    POWER_OFF = 0

    # Legacy multizone uses byte indices, read 8 zones per reply
    MAX_ZONE_INDEX = 254
    ZONES_PER_PAGE = 8

    # Extended multizone carries up to 82 zones per message
    MAX_EXTENDED_ZONES = 82
    MAX_EXTENDED_ZONE_INDEX = 0xFFFF


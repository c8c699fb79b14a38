"""
lifxcontrol Python Library

A Python library for controlling LIFX lights over the LAN protocol.

This library provides three distinct layers of abstraction:

1. **io**: Wire-level protocol implementation (UDP, message framing, reply correlation)
2. **api**: LIFX operations using io (power, colour, zones, device resolution)
3. **interface**: Pythonic interface to LIFX lights using api (discovery, registry, high-level objects)

Example usage:
    import lifxcontrol

    # High-level interface (recommended for most users)
    async with lifxcontrol.LifxControl() as lifx:
        async for device in lifx.discover(timeout=3.0):
            light = await lifxcontrol.LifxLight.create(control=lifx, device=device)
            await light.turn_on(duration=500)

    # Low-level API access (for advanced users)
    async with lifxcontrol.LifxProtocol() as protocol:
        device = lifxcontrol.LightDevice.from_mac_address("192.168.1.50", "d0:73:d5:01:02:03")
        await protocol.set_color(device, lifxcontrol.HSBK(0, 65535, 65535, 3500))
"""

# High-level interface (recommended for most users)
from .interface import LifxControl, LifxLight

# API-level models (used by api and interface)
from .api.models import FirmwareVersion, LifxDevice, LightDevice, LightSnapshot
from .api.products import ProductCatalog, Product, ProductFeatures
from .api.protocol import LifxProtocol

# Low-level models (used by io)
from .io import LifxClient, LifxListener, LifxEvent, Request, Response, ResponseType, MessageType, Frame

# Shared types and exceptions
from .api.types import Const, Service, ZoneApply
from .color import HSBK, ZoneRange, zone_runs, spread_colors
from .config import LifxConfig
from .exceptions import (
    LifxError,
    LifxValidationError,
    LifxDecodeError,
    LifxTimeoutError,
    LifxResponseError,
    LifxConnectionError,
    LifxConfigurationError,
)

# Utilities
from .utils import run_control

__version__ = "0.1.0"

# Public API - these are the main classes users should import
__all__ = [
    # High-level interface (recommended)
    "LifxControl",
    "LifxLight",

    # API-level models (for advanced users)
    "FirmwareVersion",
    "LifxDevice",
    "LightDevice",
    "LightSnapshot",
    "ProductCatalog",
    "Product",
    "ProductFeatures",
    "LifxProtocol",

    # Low-level models (for advanced users)
    "LifxClient",
    "LifxListener",
    "LifxEvent",
    "Request",
    "Response",
    "ResponseType",
    "MessageType",
    "Frame",

    # Colour and zones
    "HSBK",
    "ZoneRange",
    "zone_runs",
    "spread_colors",

    # Configuration
    "LifxConfig",

    # Exceptions
    "LifxError",
    "LifxValidationError",
    "LifxDecodeError",
    "LifxTimeoutError",
    "LifxResponseError",
    "LifxConnectionError",
    "LifxConfigurationError",

    # Types and enums
    "Const",
    "Service",
    "ZoneApply",

    # Utilities
    "run_control",
]

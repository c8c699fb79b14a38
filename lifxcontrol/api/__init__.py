"""
API-level models and protocol implementation.

This module contains models and types that belong to the API layer:
- LifxDevice, LightDevice, LightSnapshot, FirmwareVersion (API-level concepts)
- LifxProtocol (implements the light operations)
- ProductCatalog (capabilities by vendor and product id)
- Types and enums used by the API layer
"""

from .models import FirmwareVersion, LifxDevice, LightDevice, LightSnapshot, extended_multizone_supported
from .products import ProductCatalog, Product, ProductFeatures, Vendor
from .protocol import LifxProtocol
from .types import Const, Service, ZoneApply

__all__ = [
    # API-level models
    "FirmwareVersion",
    "LifxDevice",
    "LightDevice",
    "LightSnapshot",
    "extended_multizone_supported",
    "LifxProtocol",

    # Product catalog
    "ProductCatalog",
    "Product",
    "ProductFeatures",
    "Vendor",

    # API-level types
    "Const",
    "Service",
    "ZoneApply",
]

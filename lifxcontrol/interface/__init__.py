"""
High-level interface models and client.

This module contains models that belong to the interface layer:
- LifxControl (device registry, discovery and main client for high-level usage)
- LifxLight (high-level Pythonic light object)
"""

from .interface import LifxControl, LifxLight

__all__ = [
    # High-level client
    "LifxControl",

    # High-level models
    "LifxLight",
]

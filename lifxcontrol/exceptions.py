"""
lifxcontrol library exceptions.

This module defines all custom exceptions used throughout the library.
"""


class LifxError(Exception):
    """Base exception for LIFX protocol errors"""
    pass


class LifxValidationError(LifxError, ValueError):
    """Raised when an argument is out of range, before anything is sent"""
    pass


class LifxDecodeError(LifxError):
    """Raised when a datagram is truncated or malformed"""
    pass


class LifxTimeoutError(LifxError):
    """Raised when a request times out"""
    pass


class LifxResponseError(LifxError):
    """Raised when a device answers with something we can't use"""
    pass


class LifxConnectionError(LifxError):
    """Raised when the UDP endpoint is unavailable"""
    pass


class LifxConfigurationError(LifxError):
    """Raised when configuration is invalid"""
    pass

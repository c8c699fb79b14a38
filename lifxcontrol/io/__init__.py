"""
Wire-level protocol implementation.

This module contains the lowest-level communication components:
- LifxClient - Raw UDP communication and request/reply correlation
- LifxListener, LifxEvent - Unsolicited messages from devices
- Frame encoding and decoding
"""

from .codec import (
    MessageType,
    Header,
    Frame,
    Payload,
    Unknown,
    encode_frame,
    decode_frame,
    decode_payload,
)
from .command import LifxClient, Request, Response, ResponseType, ClientConst
from .event import LifxListener, LifxEvent

__all__ = [
    "LifxClient",
    "LifxListener",
    "LifxEvent",
    "Request",
    "Response",
    "ResponseType",
    "ClientConst",
    "MessageType",
    "Header",
    "Frame",
    "Payload",
    "Unknown",
    "encode_frame",
    "decode_frame",
    "decode_payload",
]

"""
LIFX LAN wire codec.

This module encodes outgoing messages to bytes and decodes incoming bytes into
typed payload values. It does no I/O.

Frame layout (36 byte header, all fields little-endian):
    Frame header      size u16, protocol:12 addressable:1 tagged:1 origin:2, source u32
    Frame address     target[8], reserved[6], res_required:1 ack_required:1 reserved:6, sequence u8
    Protocol header   reserved u64, type u16, reserved u16
    Payload           type specific, fixed offsets

Terms:
- Payload = the typed body of a message (LightSetColor, StateService, ...)
- Frame = a decoded header plus its payload
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Optional, Self

from ..color import HSBK, HSBK_SIZE
from ..exceptions import LifxDecodeError


HEADER_SIZE = 36
PROTOCOL_NUMBER = 1024
LABEL_SIZE = 32
MULTIZONE_COLORS = 8
EXTENDED_ZONE_COLORS = 82
TARGET_ALL = bytes(8)

_FRAME = struct.Struct('<HHI8s6sBBQHH')


class MessageType(IntEnum):
    """Message type numbers from the LIFX LAN protocol"""
    # Device
    GET_SERVICE = 2
    STATE_SERVICE = 3
    GET_HOST_FIRMWARE = 14
    STATE_HOST_FIRMWARE = 15
    GET_LABEL = 23
    STATE_LABEL = 25
    GET_VERSION = 32
    STATE_VERSION = 33
    ACKNOWLEDGEMENT = 45
    STATE_UNHANDLED = 223
    # Light
    LIGHT_GET = 101
    LIGHT_SET_COLOR = 102
    LIGHT_STATE = 107
    LIGHT_GET_POWER = 116
    LIGHT_SET_POWER = 117
    LIGHT_STATE_POWER = 118
    # MultiZone
    SET_COLOR_ZONES = 501
    GET_COLOR_ZONES = 502
    STATE_ZONE = 503
    STATE_MULTI_ZONE = 506
    SET_EXTENDED_COLOR_ZONES = 510
    GET_EXTENDED_COLOR_ZONES = 511
    STATE_EXTENDED_COLOR_ZONES = 512


@dataclass(frozen=True)
class Header:
    """The 36 byte frame header"""
    message_type: int
    source: int = 0
    target: bytes = TARGET_ALL
    tagged: bool = False
    ack_required: bool = False
    res_required: bool = False
    sequence: int = 0
    size: int = HEADER_SIZE
    protocol: int = PROTOCOL_NUMBER
    addressable: bool = True
    origin: int = 0

    def to_bytes(self) -> bytes:
        flags = self.protocol & 0x0FFF
        if self.addressable: flags |= 1 << 12
        if self.tagged: flags |= 1 << 13
        flags |= (self.origin & 0x03) << 14
        response_flags = 0x00
        if self.res_required: response_flags |= 0x01
        if self.ack_required: response_flags |= 0x02
        return _FRAME.pack(self.size, flags, self.source & 0xFFFFFFFF, self.target,
                           bytes(6), response_flags, self.sequence & 0xFF,
                           0, self.message_type, 0)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < HEADER_SIZE:
            raise LifxDecodeError(f"Frame of {len(data)} bytes is shorter than the {HEADER_SIZE} byte header")
        size, flags, source, target, _, response_flags, sequence, _, message_type, _ = _FRAME.unpack_from(data)
        if size < HEADER_SIZE:
            raise LifxDecodeError(f"Header declares size {size}, less than the header itself")
        protocol = flags & 0x0FFF
        if protocol != PROTOCOL_NUMBER:
            raise LifxDecodeError(f"Unsupported protocol number {protocol}")
        return cls(
            message_type=message_type,
            source=source,
            target=target,
            tagged=bool(flags & (1 << 13)),
            ack_required=bool(response_flags & 0x02),
            res_required=bool(response_flags & 0x01),
            sequence=sequence,
            size=size,
            protocol=protocol,
            addressable=bool(flags & (1 << 12)),
            origin=(flags >> 14) & 0x03,
        )


# ============================
# PAYLOADS
# ============================

class Payload:
    """Base class for message bodies. Subclasses declare TYPE and SIZE."""
    TYPE: ClassVar[MessageType]
    SIZE: ClassVar[int] = 0

    def pack(self) -> bytes:
        return b''

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        return cls()

    @classmethod
    def _require(cls, data: bytes, size: int):
        if len(data) < size:
            raise LifxDecodeError(f"{cls.__name__} payload needs {size} bytes, received {len(data)}")


def _pack_label(label: str) -> bytes:
    return label.encode('utf-8')[:LABEL_SIZE].ljust(LABEL_SIZE, b'\x00')


def _unpack_label(data: bytes) -> str:
    return data.rstrip(b'\x00').decode('utf-8', errors='replace')


@dataclass(frozen=True)
class GetService(Payload):
    TYPE = MessageType.GET_SERVICE


@dataclass(frozen=True)
class StateService(Payload):
    """Service announcement. A port of 0 means the service is temporarily unavailable."""
    TYPE = MessageType.STATE_SERVICE
    SIZE = 5
    service: int
    port: int

    def pack(self) -> bytes:
        return struct.pack('<BI', self.service, self.port)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        return cls(*struct.unpack_from('<BI', data))


@dataclass(frozen=True)
class GetHostFirmware(Payload):
    TYPE = MessageType.GET_HOST_FIRMWARE


@dataclass(frozen=True)
class StateHostFirmware(Payload):
    TYPE = MessageType.STATE_HOST_FIRMWARE
    SIZE = 20
    build: int  # nanoseconds since epoch
    version_minor: int
    version_major: int

    def pack(self) -> bytes:
        return struct.pack('<QQHH', self.build, 0, self.version_minor, self.version_major)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        build, _, minor, major = struct.unpack_from('<QQHH', data)
        return cls(build=build, version_minor=minor, version_major=major)


@dataclass(frozen=True)
class GetLabel(Payload):
    TYPE = MessageType.GET_LABEL


@dataclass(frozen=True)
class StateLabel(Payload):
    TYPE = MessageType.STATE_LABEL
    SIZE = LABEL_SIZE
    label: str

    def pack(self) -> bytes:
        return _pack_label(self.label)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        return cls(label=_unpack_label(data[:LABEL_SIZE]))


@dataclass(frozen=True)
class GetVersion(Payload):
    TYPE = MessageType.GET_VERSION


@dataclass(frozen=True)
class StateVersion(Payload):
    TYPE = MessageType.STATE_VERSION
    SIZE = 12
    vendor: int
    product: int

    def pack(self) -> bytes:
        return struct.pack('<III', self.vendor, self.product, 0)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        vendor, product, _ = struct.unpack_from('<III', data)
        return cls(vendor=vendor, product=product)


@dataclass(frozen=True)
class Acknowledgement(Payload):
    TYPE = MessageType.ACKNOWLEDGEMENT


@dataclass(frozen=True)
class StateUnhandled(Payload):
    """Sent by a device that does not implement the requested message type"""
    TYPE = MessageType.STATE_UNHANDLED
    SIZE = 2
    unhandled_type: int

    def pack(self) -> bytes:
        return struct.pack('<H', self.unhandled_type)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        return cls(*struct.unpack_from('<H', data))


@dataclass(frozen=True)
class LightGet(Payload):
    TYPE = MessageType.LIGHT_GET


@dataclass(frozen=True)
class LightSetColor(Payload):
    TYPE = MessageType.LIGHT_SET_COLOR
    SIZE = 13
    color: HSBK
    duration: int  # milliseconds

    def pack(self) -> bytes:
        return b'\x00' + self.color.to_bytes() + struct.pack('<I', self.duration)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        return cls(color=HSBK.from_bytes(data, 1), duration=struct.unpack_from('<I', data, 9)[0])


@dataclass(frozen=True)
class LightState(Payload):
    TYPE = MessageType.LIGHT_STATE
    SIZE = 52
    color: HSBK
    power: int
    label: str

    @property
    def is_on(self) -> bool:
        return self.power > 0

    def pack(self) -> bytes:
        return self.color.to_bytes() + struct.pack('<hH', 0, self.power) + _pack_label(self.label) + bytes(8)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        power = struct.unpack_from('<H', data, 10)[0]
        return cls(color=HSBK.from_bytes(data), power=power, label=_unpack_label(data[12:12 + LABEL_SIZE]))


@dataclass(frozen=True)
class LightGetPower(Payload):
    TYPE = MessageType.LIGHT_GET_POWER


@dataclass(frozen=True)
class LightSetPower(Payload):
    TYPE = MessageType.LIGHT_SET_POWER
    SIZE = 6
    level: int
    duration: int

    def pack(self) -> bytes:
        return struct.pack('<HI', self.level, self.duration)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        return cls(*struct.unpack_from('<HI', data))


@dataclass(frozen=True)
class LightStatePower(Payload):
    TYPE = MessageType.LIGHT_STATE_POWER
    SIZE = 2
    level: int

    @property
    def is_on(self) -> bool:
        return self.level > 0

    def pack(self) -> bytes:
        return struct.pack('<H', self.level)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        return cls(*struct.unpack_from('<H', data))


@dataclass(frozen=True)
class SetColorZones(Payload):
    TYPE = MessageType.SET_COLOR_ZONES
    SIZE = 15
    start_index: int
    end_index: int
    color: HSBK
    duration: int
    apply: int

    def pack(self) -> bytes:
        return (struct.pack('<BB', self.start_index, self.end_index) + self.color.to_bytes()
                + struct.pack('<IB', self.duration, self.apply))

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        start, end = struct.unpack_from('<BB', data)
        duration, apply = struct.unpack_from('<IB', data, 10)
        return cls(start_index=start, end_index=end, color=HSBK.from_bytes(data, 2), duration=duration, apply=apply)


@dataclass(frozen=True)
class GetColorZones(Payload):
    TYPE = MessageType.GET_COLOR_ZONES
    SIZE = 2
    start_index: int
    end_index: int

    def pack(self) -> bytes:
        return struct.pack('<BB', self.start_index, self.end_index)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        return cls(*struct.unpack_from('<BB', data))


@dataclass(frozen=True)
class StateZone(Payload):
    TYPE = MessageType.STATE_ZONE
    SIZE = 2 + HSBK_SIZE
    count: int
    index: int
    color: HSBK

    @property
    def colors(self) -> tuple[HSBK, ...]:
        return (self.color,)

    def pack(self) -> bytes:
        return struct.pack('<BB', self.count, self.index) + self.color.to_bytes()

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        count, index = struct.unpack_from('<BB', data)
        return cls(count=count, index=index, color=HSBK.from_bytes(data, 2))


@dataclass(frozen=True)
class StateMultiZone(Payload):
    """Always eight colors. count is the number of zones on the whole device."""
    TYPE = MessageType.STATE_MULTI_ZONE
    SIZE = 2 + MULTIZONE_COLORS * HSBK_SIZE
    count: int
    index: int
    colors: tuple[HSBK, ...]

    def pack(self) -> bytes:
        if len(self.colors) != MULTIZONE_COLORS:
            raise ValueError(f"StateMultiZone carries exactly {MULTIZONE_COLORS} colors")
        return struct.pack('<BB', self.count, self.index) + b''.join(c.to_bytes() for c in self.colors)

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, cls.SIZE)
        count, index = struct.unpack_from('<BB', data)
        colors = tuple(HSBK.from_bytes(data, 2 + i * HSBK_SIZE) for i in range(MULTIZONE_COLORS))
        return cls(count=count, index=index, colors=colors)


@dataclass(frozen=True)
class SetExtendedColorZones(Payload):
    TYPE = MessageType.SET_EXTENDED_COLOR_ZONES
    SIZE = 8 + EXTENDED_ZONE_COLORS * HSBK_SIZE
    duration: int
    apply: int
    index: int
    colors: tuple[HSBK, ...]

    def pack(self) -> bytes:
        if len(self.colors) > EXTENDED_ZONE_COLORS:
            raise ValueError(f"SetExtendedColorZones carries at most {EXTENDED_ZONE_COLORS} colors")
        body = b''.join(c.to_bytes() for c in self.colors)
        return (struct.pack('<IBHB', self.duration, self.apply, self.index, len(self.colors))
                + body.ljust(EXTENDED_ZONE_COLORS * HSBK_SIZE, b'\x00'))

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, 8)
        duration, apply, index, count = struct.unpack_from('<IBHB', data)
        cls._require(data, 8 + count * HSBK_SIZE)
        colors = tuple(HSBK.from_bytes(data, 8 + i * HSBK_SIZE) for i in range(count))
        return cls(duration=duration, apply=apply, index=index, colors=colors)


@dataclass(frozen=True)
class GetExtendedColorZones(Payload):
    TYPE = MessageType.GET_EXTENDED_COLOR_ZONES


@dataclass(frozen=True)
class StateExtendedColorZones(Payload):
    """Variable number of colors. count is the number of zones on the whole device."""
    TYPE = MessageType.STATE_EXTENDED_COLOR_ZONES
    SIZE = 5 + EXTENDED_ZONE_COLORS * HSBK_SIZE
    count: int
    index: int
    colors: tuple[HSBK, ...]

    def pack(self) -> bytes:
        body = b''.join(c.to_bytes() for c in self.colors)
        return (struct.pack('<HHB', self.count, self.index, len(self.colors))
                + body.ljust(EXTENDED_ZONE_COLORS * HSBK_SIZE, b'\x00'))

    @classmethod
    def unpack(cls, data: bytes) -> Self:
        cls._require(data, 5)
        count, index, colors_count = struct.unpack_from('<HHB', data)
        cls._require(data, 5 + colors_count * HSBK_SIZE)
        colors = tuple(HSBK.from_bytes(data, 5 + i * HSBK_SIZE) for i in range(colors_count))
        return cls(count=count, index=index, colors=colors)


@dataclass(frozen=True)
class Unknown(Payload):
    """A message type we don't decode. The raw payload is kept."""
    message_type: int
    payload: bytes = field(default=b'', repr=False)

    def pack(self) -> bytes:
        return self.payload


PAYLOADS: dict[int, type[Payload]] = {
    cls.TYPE: cls for cls in (
        GetService, StateService, GetHostFirmware, StateHostFirmware, GetLabel, StateLabel,
        GetVersion, StateVersion, Acknowledgement, StateUnhandled,
        LightGet, LightSetColor, LightState, LightGetPower, LightSetPower, LightStatePower,
        SetColorZones, GetColorZones, StateZone, StateMultiZone,
        SetExtendedColorZones, GetExtendedColorZones, StateExtendedColorZones,
    )
}


def message_type_of(payload: Payload) -> int:
    if isinstance(payload, Unknown):
        return payload.message_type
    return payload.TYPE


# ============================
# FRAMES
# ============================

@dataclass(frozen=True)
class Frame:
    header: Header
    payload: Payload

    @property
    def message_type(self) -> int:
        return self.header.message_type

    @property
    def source(self) -> int:
        return self.header.source

    @property
    def sequence(self) -> int:
        return self.header.sequence

    @property
    def target(self) -> bytes:
        return self.header.target


def encode_frame(payload: Payload,
                 source: int,
                 target: bytes = TARGET_ALL,
                 tagged: bool = False,
                 ack_required: bool = False,
                 res_required: bool = False,
                 sequence: int = 0) -> bytes:
    """Pack a payload and prepend its header. The size field is filled in once the payload length is known."""
    if len(target) != 8:
        raise ValueError(f"Target must be 8 bytes, got {len(target)}")
    body = payload.pack()
    header = Header(
        message_type=message_type_of(payload),
        source=source,
        target=TARGET_ALL if tagged else target,
        tagged=tagged,
        ack_required=ack_required,
        res_required=res_required,
        sequence=sequence,
        size=HEADER_SIZE + len(body),
    )
    return header.to_bytes() + body


def decode_payload(message_type: int, data: bytes) -> Payload:
    """Decode a payload by message type. Unrecognised types decode to Unknown."""
    cls = PAYLOADS.get(message_type)
    if cls is None:
        return Unknown(message_type=message_type, payload=bytes(data))
    return cls.unpack(data)


def decode_frame(data: bytes, header: Optional[Header] = None) -> Frame:
    """Decode a whole datagram. Raises LifxDecodeError if it is truncated or malformed."""
    if header is None:
        header = Header.from_bytes(data)
    if len(data) < header.size:
        raise LifxDecodeError(f"Frame declares {header.size} bytes but only {len(data)} were received")
    payload = decode_payload(header.message_type, data[HEADER_SIZE:header.size])
    return Frame(header=header, payload=payload)

"""
A simulated LIFX network for tests.

FakeNetwork stands in for the UDP socket of a LifxClient. Every datagram the
client sends is decoded and handed to the FakeLights it is addressed to, and
their replies are fed back into the client's receive path on the event loop.
"""

import asyncio
import struct
from typing import Optional

from lifxcontrol.color import HSBK
from lifxcontrol.io import LifxClient, decode_frame, encode_frame
from lifxcontrol.io.codec import (
    Acknowledgement,
    Frame,
    GetColorZones,
    GetExtendedColorZones,
    GetHostFirmware,
    GetLabel,
    GetService,
    GetVersion,
    LightGet,
    LightGetPower,
    LightSetColor,
    LightSetPower,
    LightState,
    LightStatePower,
    Payload,
    SetColorZones,
    SetExtendedColorZones,
    StateExtendedColorZones,
    StateHostFirmware,
    StateLabel,
    StateMultiZone,
    StateService,
    StateUnhandled,
    StateVersion,
    StateZone,
)

BLANK = HSBK(0, 0, 0, 3500)
WARM_WHITE = HSBK(0, 0, 65535, 2700)


def mac_bytes(last: int) -> bytes:
    return bytes([0xd0, 0x73, 0xd5, 0x00, 0x00, last, 0x00, 0x00])


class FakeLight:
    """A LIFX device that answers from its own state"""

    def __init__(self,
                 host: str,
                 mac: bytes,
                 label: str = "Fake",
                 vendor: int = 1,
                 product: int = 27,
                 firmware: tuple[int, int] = (3, 70),
                 zone_count: int = 0,
                 port: int = 56700,
                 service_port: Optional[int] = None):
        self.host = host
        self.mac = mac
        self.port = port
        self.service_port = port if service_port is None else service_port
        self.label = label
        self.vendor = vendor
        self.product = product
        self.firmware = firmware
        self.color = WARM_WHITE
        self.power = 0
        self.zones: Optional[list[HSBK]] = [BLANK] * zone_count if zone_count else None
        self.received: list[Frame] = []
        self.mute = False
        self.delays: dict[int, float] = {}
        self.truncate: set[int] = set()

    def handle(self, frame: Frame) -> list[Payload]:
        self.received.append(frame)
        replies: list[Payload] = []
        match frame.payload:
            case GetService():
                replies.append(StateService(service=1, port=self.service_port))
            case GetLabel():
                replies.append(StateLabel(label=self.label))
            case GetVersion():
                replies.append(StateVersion(vendor=self.vendor, product=self.product))
            case GetHostFirmware():
                replies.append(StateHostFirmware(build=0, version_minor=self.firmware[1], version_major=self.firmware[0]))
            case LightGet():
                replies.append(LightState(color=self.color, power=self.power, label=self.label))
            case LightGetPower():
                replies.append(LightStatePower(level=self.power))
            case LightSetPower():
                self.power = frame.payload.level
            case LightSetColor():
                self.color = frame.payload.color
                if self.zones is not None:
                    self.zones = [frame.payload.color] * len(self.zones)
            case SetColorZones() if self.zones is not None:
                for index in range(frame.payload.start_index, min(frame.payload.end_index, len(self.zones) - 1) + 1):
                    self.zones[index] = frame.payload.color
            case GetColorZones() if self.zones is not None:
                start = frame.payload.start_index
                if frame.payload.start_index == frame.payload.end_index:
                    replies.append(StateZone(count=len(self.zones), index=start, color=self.zones[start]))
                else:
                    page = self.zones[start:start + 8]
                    page += [HSBK(0, 0, 0, 0)] * (8 - len(page))
                    replies.append(StateMultiZone(count=len(self.zones), index=start, colors=tuple(page)))
            case SetExtendedColorZones() if self.zones is not None:
                index = frame.payload.index
                for offset, color in enumerate(frame.payload.colors):
                    if index + offset < len(self.zones):
                        self.zones[index + offset] = color
            case GetExtendedColorZones() if self.zones is not None:
                replies.append(StateExtendedColorZones(count=len(self.zones), index=0, colors=tuple(self.zones[:82])))
            case _:
                replies.append(StateUnhandled(unhandled_type=frame.message_type))
        if frame.header.ack_required:
            replies.insert(0, Acknowledgement())
        return replies


class FakeTransport:
    def __init__(self, network: "FakeNetwork"):
        self.network = network
        self.sent: list[tuple[bytes, tuple[str, int]]] = []
        self.closed = False

    def sendto(self, data: bytes, addr: tuple[str, int]):
        self.sent.append((data, addr))
        self.network.deliver(data, addr)

    def close(self):
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed


class FakeNetwork:
    def __init__(self):
        self.lights: list[FakeLight] = []
        self.transport = FakeTransport(self)
        self.client: Optional[LifxClient] = None

    def add(self, light: FakeLight) -> FakeLight:
        self.lights.append(light)
        return light

    def attach(self, client: LifxClient) -> LifxClient:
        client._transport = self.transport
        self.client = client
        return client

    def sent_types(self) -> list[int]:
        return [decode_frame(data).message_type for data, _ in self.transport.sent]

    def deliver(self, data: bytes, addr: tuple[str, int]):
        frame = decode_frame(data)
        loop = asyncio.get_running_loop()
        for light in self.lights:
            if not frame.header.tagged and (light.host != addr[0] or frame.target != light.mac):
                continue
            replies = light.handle(frame)
            if light.mute:
                continue
            for payload in replies:
                reply = encode_frame(payload, source=frame.source, target=light.mac, sequence=frame.sequence)
                if payload.TYPE in light.truncate:
                    reply = bytearray(reply[:56])
                    struct.pack_into('<H', reply, 0, len(reply))
                    reply = bytes(reply)
                loop.call_later(light.delays.get(payload.TYPE, 0), self.client._receive_datagram, reply, (light.host, light.port))

    def inject(self, payload: Payload, source: int, light: FakeLight):
        """Deliver a datagram nobody asked for"""
        reply = encode_frame(payload, source=source, target=light.mac)
        self.client._receive_datagram(reply, (light.host, light.port))

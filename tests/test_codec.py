import struct

import pytest

from lifxcontrol.color import HSBK
from lifxcontrol.exceptions import LifxDecodeError
from lifxcontrol.io import MessageType, Unknown, decode_frame, decode_payload, encode_frame
from lifxcontrol.io.codec import (
    HEADER_SIZE,
    GetColorZones,
    GetService,
    Header,
    LightSetColor,
    LightSetPower,
    LightState,
    SetColorZones,
    SetExtendedColorZones,
    StateExtendedColorZones,
    StateMultiZone,
    StateService,
)

MAC = bytes([0xd0, 0x73, 0xd5, 0x01, 0x02, 0x03, 0x00, 0x00])


def test_discovery_broadcast_header_bytes():
    data = encode_frame(GetService(), source=0x12345678, tagged=True, sequence=5)
    assert len(data) == HEADER_SIZE
    assert data[0:2] == b'\x24\x00'
    # protocol 1024, addressable and tagged
    assert data[2:4] == b'\x00\x34'
    assert data[4:8] == bytes([0x78, 0x56, 0x34, 0x12])
    assert data[8:16] == bytes(8)
    assert data[22] == 0
    assert data[23] == 5
    assert data[32:34] == b'\x02\x00'


def test_response_flag_bits():
    data = encode_frame(GetService(), source=2, target=MAC, ack_required=True)
    assert data[22] == 0x02
    data = encode_frame(GetService(), source=2, target=MAC, res_required=True)
    assert data[22] == 0x01
    # A targeted message is not tagged
    assert struct.unpack_from('<H', data, 2)[0] == 0x1400


def test_tagged_frame_ignores_target():
    data = encode_frame(GetService(), source=2, target=MAC, tagged=True)
    assert decode_frame(data).target == bytes(8)


def test_header_round_trip():
    data = encode_frame(LightSetPower(level=65535, duration=250), source=0xCAFEBABE, target=MAC,
                        ack_required=True, sequence=200)
    header = Header.from_bytes(data)
    assert header.size == HEADER_SIZE + 6
    assert header.protocol == 1024
    assert header.addressable
    assert not header.tagged
    assert header.source == 0xCAFEBABE
    assert header.target == MAC
    assert header.ack_required and not header.res_required
    assert header.sequence == 200
    assert header.message_type == MessageType.LIGHT_SET_POWER


@pytest.mark.parametrize("kelvin,duration", [(2500, 0), (3500, 1000), (9000, 0xFFFFFFFF)])
def test_set_color_round_trip(kelvin, duration):
    color = HSBK(hue=21845, saturation=65535, brightness=32768, kelvin=kelvin)
    frame = decode_frame(encode_frame(LightSetColor(color=color, duration=duration), source=7, target=MAC))
    assert frame.payload == LightSetColor(color=color, duration=duration)
    assert frame.header.size == HEADER_SIZE + 13


def test_set_power_duration_is_32_bit():
    data = encode_frame(LightSetPower(level=0, duration=100000), source=2, target=MAC)
    assert decode_frame(data).payload.duration == 100000


def test_light_state_decode():
    color = HSBK(1, 2, 3, 4000)
    state = decode_frame(encode_frame(LightState(color=color, power=65535, label="Lounge"), source=3)).payload
    assert state.color == color
    assert state.is_on
    assert state.label == "Lounge"
    assert len(LightState(color=color, power=0, label="x").pack()) == 52


def test_truncated_light_state_raises():
    with pytest.raises(LifxDecodeError):
        decode_payload(MessageType.LIGHT_STATE, bytes(51))


def test_frame_shorter_than_declared_size_raises():
    data = encode_frame(StateService(service=1, port=56700), source=3)
    with pytest.raises(LifxDecodeError):
        decode_frame(data[:-1])


def test_short_header_raises():
    with pytest.raises(LifxDecodeError):
        Header.from_bytes(bytes(35))


def test_wrong_protocol_raises():
    data = bytearray(encode_frame(GetService(), source=2))
    struct.pack_into('<H', data, 2, 0x1000 | 1025)
    with pytest.raises(LifxDecodeError):
        Header.from_bytes(bytes(data))


def test_unknown_type_keeps_payload():
    payload = decode_payload(9999, b'\x01\x02')
    assert isinstance(payload, Unknown)
    assert payload.message_type == 9999
    assert payload.payload == b'\x01\x02'

    frame = decode_frame(encode_frame(Unknown(message_type=9999, payload=b'\xaa'), source=5))
    assert frame.message_type == 9999
    assert frame.payload == Unknown(message_type=9999, payload=b'\xaa')


def test_trailing_bytes_beyond_size_are_ignored():
    data = encode_frame(StateService(service=1, port=56700), source=3) + b'\xff\xff'
    assert decode_frame(data).payload == StateService(service=1, port=56700)


def test_state_service_layout():
    data = StateService(service=1, port=56700).pack()
    assert data == bytes([0x01]) + struct.pack('<I', 56700)


def test_zone_messages():
    color = HSBK(100, 200, 300, 3500)
    assert SetColorZones(start_index=0, end_index=7, color=color, duration=5, apply=1).pack() == (
        b'\x00\x07' + color.to_bytes() + struct.pack('<IB', 5, 1))
    assert GetColorZones(start_index=8, end_index=15).pack() == b'\x08\x0f'

    colors = tuple(HSBK(i, 0, 0, 3500) for i in range(8))
    multi = StateMultiZone.unpack(StateMultiZone(count=20, index=8, colors=colors).pack())
    assert multi.count == 20 and multi.index == 8 and multi.colors == colors


def test_extended_messages_are_fixed_size():
    colors = tuple(HSBK(i, 0, 0, 3500) for i in range(3))
    data = SetExtendedColorZones(duration=0, apply=1, index=0, colors=colors).pack()
    assert len(data) == 8 + 82 * 8
    assert data[7] == 3
    assert SetExtendedColorZones.unpack(data).colors == colors

    state = StateExtendedColorZones.unpack(StateExtendedColorZones(count=30, index=0, colors=colors).pack())
    assert state.count == 30 and state.colors == colors


def test_extended_state_with_missing_colors_raises():
    data = struct.pack('<HHB', 10, 0, 10) + bytes(8 * 3)
    with pytest.raises(LifxDecodeError):
        StateExtendedColorZones.unpack(data)

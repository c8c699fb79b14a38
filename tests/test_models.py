import asyncio
from dataclasses import FrozenInstanceError

import pytest

from lifxcontrol import LifxControl, run_control
from lifxcontrol.api import FirmwareVersion, LightDevice, LightSnapshot
from lifxcontrol.color import HSBK
from lifxcontrol.exceptions import LifxTimeoutError, LifxValidationError
from lifxcontrol.io import LifxEvent, LifxListener, decode_frame, encode_frame
from lifxcontrol.io.codec import StateService

MAC = bytes([0xd0, 0x73, 0xd5, 0x01, 0x02, 0x03, 0x00, 0x00])


def test_device_addresses():
    device = LightDevice(host="192.0.2.5", mac=MAC)
    assert device.mac_address == "d0:73:d5:01:02:03"
    assert device.serial == "d073d5010203"
    assert device.addr == ("192.0.2.5", 56700)
    assert LightDevice.from_mac_address("192.0.2.5", "D0:73:D5:01:02:03").mac == MAC


def test_device_is_immutable():
    device = LightDevice(host="192.0.2.5", mac=MAC, last_seen=1.0)
    with pytest.raises(FrozenInstanceError):
        device.host = "192.0.2.6"
    moved = device.seen("192.0.2.6", 56701, timestamp=2.0)
    assert (moved.host, moved.port, moved.last_seen, moved.mac) == ("192.0.2.6", 56701, 2.0, MAC)
    assert device.host == "192.0.2.5"


def test_device_rejects_short_mac():
    with pytest.raises(LifxValidationError):
        LightDevice(host="192.0.2.5", mac=MAC[:6])


def test_snapshot_without_product():
    snapshot = LightSnapshot(device=LightDevice(host="192.0.2.5", mac=MAC), label="Hall", power=True,
                             color=HSBK(0, 0, 65535, 3500), firmware=FirmwareVersion(3, 70), vendor=1, product_id=999)
    assert not snapshot.multizone
    assert snapshot.zone_count == 0
    assert snapshot.mac_address == "d0:73:d5:01:02:03"
    assert FirmwareVersion(3, 70) > FirmwareVersion(2, 77)


@pytest.mark.asyncio
async def test_listener_events_end_on_close():
    listener = LifxListener()
    frame = decode_frame(encode_frame(StateService(service=1, port=56700), source=9, target=MAC))
    listener.put(LifxEvent(frame=frame, ip_address="192.0.2.5", ip_port=56700))

    received = []

    async def consume():
        async for event in listener.events():
            received.append(event)

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    await listener.close()
    await asyncio.wait_for(consumer, 1.0)
    assert [event.mac for event in received] == [MAC]


@pytest.mark.asyncio
async def test_listener_timeout():
    async with LifxListener() as listener:
        assert [event async for event in listener.events(timeout=0.02)] == []
        assert await listener.get_events(3, timeout=0.01) == []
    assert not listener.is_listening()


def test_run_control_closes_and_reports():
    seen = []

    async def main(lifx):
        seen.append(lifx)

    run_control(main)
    assert isinstance(seen[0], LifxControl)
    assert seen[0].protocol.client is None

    async def timed_out(lifx):
        raise LifxTimeoutError("no reply")

    with pytest.raises(SystemExit) as exit_info:
        run_control(timed_out)
    assert exit_info.value.code == 2

    async def broken(lifx):
        raise RuntimeError("boom")

    with pytest.raises(SystemExit) as exit_info:
        run_control(broken)
    assert exit_info.value.code == 1

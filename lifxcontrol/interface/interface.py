import asyncio
import time
import logging
from datetime import timedelta
from typing import AsyncGenerator, Awaitable, Callable, Optional, Sequence

from ..api import LifxProtocol, LightDevice, LightSnapshot, Service
from ..api.products import ProductCatalog
from ..color import HSBK
from ..config import LifxConfig
from ..exceptions import LifxValidationError

"""
===================================================================================
This module takes the LifxProtocol API and provides a higher level interface
intended for use in a control interface or home automation system written in Python.
===================================================================================

Terms:
LifxProtocol = A class which implements the LIFX LAN operations using lifxcontrol.io.
LightDevice = A light found by discovery, identified by its hardware address.
LightSnapshot = Everything resolved about one light at one moment.
"""


class LifxControl:
    def __init__(self,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False,
                 config: Optional[LifxConfig] = None,
                 catalog: Optional[ProductCatalog] = None,
                 error_callback: Optional[Callable[[BaseException], None]] = None,
                 ):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or LifxConfig()
        self.protocol: LifxProtocol = LifxProtocol(logger=self.logger, print_traffic=print_traffic, config=self.config,
                                                   catalog=catalog, error_callback=error_callback)
        # Registry, keyed by the 8 byte hardware address. Entries are replaced, never mutated.
        self.devices: dict[bytes, LightDevice] = {}
        self.snapshots: dict[bytes, LightSnapshot] = {}
        self._subscribers: list[asyncio.Queue[LightDevice]] = []
        self._callbacks = _callbacks()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    @property
    def on_connect(self) -> "CallbackOnConnect | None":
        return self._callbacks.on_connect
    @on_connect.setter
    def on_connect(self, func: "CallbackOnConnect | None") -> None:
        self._callbacks.on_connect = func

    @property
    def on_disconnect(self) -> "CallbackOnDisconnect | None":
        return self._callbacks.on_disconnect
    @on_disconnect.setter
    def on_disconnect(self, func: "CallbackOnDisconnect | None") -> None:
        self._callbacks.on_disconnect = func

    @property
    def new_device(self) -> "CallbackNewDevice | None":
        return self._callbacks.new_device
    @new_device.setter
    def new_device(self, func: "CallbackNewDevice | None") -> None:
        self._callbacks.new_device = func

    # ============================
    # Setup / Start / Stop
    # ============================

    async def start(self) -> None:
        self.protocol.set_callbacks(service_callback=self.service_event)
        await self.protocol.start_event_monitoring()
        if callable(self._callbacks.on_connect):
            await self._callbacks.on_connect()

    async def stop(self) -> None:
        await self.protocol.stop_event_monitoring()
        if callable(self._callbacks.on_disconnect):
            await self._callbacks.on_disconnect()

    async def aclose(self) -> None:
        await self.stop()
        await self.protocol.aclose()

    # ============================
    # LifxProtocol callbacks
    # ============================

    async def service_event(self, mac: bytes, host: str, service: int, port: int, timestamp: float) -> None:
        """A service announcement. New hardware addresses are registered and announced, known ones refreshed."""
        if service != Service.UDP:
            self.logger.debug(f"Ignoring service {service} announced by {host}")
            return
        known = self.devices.get(mac)
        if known is None:
            # Port 0 means the service is temporarily unavailable
            if port == 0:
                self.logger.debug(f"Ignoring unavailable device at {host}")
                return
            device = LightDevice(host=host, mac=mac, port=port, service=service, last_seen=timestamp)
            self.devices[mac] = device
            self.logger.info(f"Discovered {device.mac_address} at {host}:{port}")
            for queue in list(self._subscribers):
                queue.put_nowait(device)
            if callable(self._callbacks.new_device):
                await self._callbacks.new_device(device=device)
        else:
            self.devices[mac] = known.seen(host, port or known.port, timestamp)

    # ============================
    # Discovery
    # ============================

    async def discover(self,
                       timeout: Optional[float] = None,
                       interval: Optional[float] = None,
                       include_known: bool = False) -> AsyncGenerator[LightDevice, None]:
        """
        Broadcast discovery every interval seconds and yield each newly seen device once.

        Runs until timeout, or forever without one. Each call is an independent
        subscription, so discovery can be restarted at any time. With include_known,
        devices already in the registry are yielded first.
        """
        if self.protocol.event_task is None or self.protocol.event_task.done():
            await self.start()
        interval = interval or self.config.discovery_interval
        queue: asyncio.Queue[LightDevice] = asyncio.Queue()
        if include_known:
            for device in list(self.devices.values()):
                queue.put_nowait(device)
        self._subscribers.append(queue)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        next_broadcast = loop.time()
        try:
            while True:
                now = loop.time()
                if deadline is not None and now >= deadline:
                    return
                if now >= next_broadcast:
                    await self.protocol.broadcast_discovery()
                    next_broadcast = now + interval
                wait = next_broadcast - now
                if deadline is not None:
                    wait = min(wait, deadline - now)
                try:
                    device = await asyncio.wait_for(queue.get(), timeout=max(wait, 0))
                except asyncio.TimeoutError:
                    continue
                yield device
        finally:
            self._subscribers.remove(queue)

    # ============================
    # Registry
    # ============================

    def get_device(self, mac: bytes | str) -> Optional[LightDevice]:
        """Look up a device by its 8 byte hardware address or a "d0:73:d5:.." string"""
        if isinstance(mac, str):
            for device in self.devices.values():
                if device.mac_address == mac.lower():
                    return device
            return None
        return self.devices.get(mac)

    def forget(self, device: LightDevice) -> bool:
        """Drop a device and its snapshot. It will be announced again if it is rediscovered."""
        self.snapshots.pop(device.mac, None)
        return self.devices.pop(device.mac, None) is not None

    def stale(self, max_age: float | timedelta) -> list[LightDevice]:
        """Devices that haven't announced themselves within max_age"""
        if isinstance(max_age, timedelta):
            max_age = max_age.total_seconds()
        cutoff = time.time() - max_age
        return [device for device in self.devices.values() if device.last_seen < cutoff]

    async def resolve(self, device: LightDevice) -> LightSnapshot:
        """Query a device and store the resulting snapshot"""
        device = self.devices.get(device.mac, device)
        snapshot = await self.protocol.resolve(device)
        self.snapshots[device.mac] = snapshot
        return snapshot

    async def set_colors(self, device: LightDevice | LightSnapshot, colors: Sequence[HSBK],
                         duration: int | timedelta = 0, wait: bool = True) -> Optional[asyncio.Task]:
        """
        Spread colors across a light, resolving it first if there is no snapshot yet.

        With wait=False the request runs in the background and its task is returned.
        """
        if isinstance(device, LightSnapshot):
            snapshot = device
        else:
            snapshot = self.snapshots.get(device.mac) or await self.resolve(device)
        if wait:
            await self.protocol.set_colors(snapshot, colors, duration)
            return None
        return self.protocol.detach(self.protocol.set_colors(snapshot, colors, duration, ack=False),
                                    f"set_colors {snapshot.mac_address}")

    # ============================
    # Abstraction layer commands
    # ============================

    async def get_lights(self) -> "list[LifxLight]":
        """Resolve every known device. Devices that don't answer are logged and left out."""
        lights = []
        for device in list(self.devices.values()):
            try:
                lights.append(await LifxLight.create(control=self, device=device))
            except Exception as e:
                self.logger.warning(f"Unable to resolve {device.mac_address} at {device.host}: {e}")
        return lights


class LifxLight:
    def __init__(self, control: LifxControl, device: LightDevice, snapshot: Optional[LightSnapshot] = None):
        self.control = control
        self.protocol = control.protocol
        self.device = device
        self.snapshot = snapshot
        self.client_data: dict = {}

    @classmethod
    async def create(cls, control: LifxControl, device: LightDevice):
        """Async factory method for LifxLight"""
        light = cls(control, device)
        await light.refresh()
        return light

    def __repr__(self) -> str:
        return f"LifxLight<{self.label} {self.device.mac_address}>"

    def __eq__(self, other) -> bool:
        return isinstance(other, LifxLight) and other.device.mac == self.device.mac

    def __hash__(self) -> int:
        return hash(self.device.mac)

    @property
    def label(self) -> Optional[str]:
        return self.snapshot.label if self.snapshot else None

    @property
    def power(self) -> Optional[bool]:
        return self.snapshot.power if self.snapshot else None

    @property
    def color(self) -> Optional[HSBK]:
        return self.snapshot.color if self.snapshot else None

    @property
    def zones(self) -> Optional[tuple[HSBK, ...]]:
        return self.snapshot.zones if self.snapshot else None

    @property
    def multizone(self) -> bool:
        return self.snapshot is not None and self.snapshot.multizone

    async def refresh(self) -> LightSnapshot:
        self.snapshot = await self.control.resolve(self.device)
        self.device = self.snapshot.device
        return self.snapshot

    # -----------------------------------------------------------------------------------------
    # REMINDER: None of the following methods update the snapshot.
    #   LIFX lights don't report changes, call refresh() to read the new state.
    # -----------------------------------------------------------------------------------------

    async def get_power(self) -> bool:
        return await self.protocol.get_power(self.device)

    async def turn_on(self, duration: int | timedelta = 0) -> bool:
        return await self.protocol.turn_on(self.device, duration)

    async def turn_off(self, duration: int | timedelta = 0) -> bool:
        return await self.protocol.turn_off(self.device, duration)

    async def set_color(self, color: HSBK, duration: int | timedelta = 0) -> bool:
        return await self.protocol.set_color(self.device, color, duration)

    async def set_rgb(self, r: int, g: int, b: int, kelvin: int = 3500, duration: int | timedelta = 0) -> bool:
        return await self.protocol.set_color_rgb(self.device, r, g, b, kelvin, duration)

    async def set_colors(self, colors: Sequence[HSBK], duration: int | timedelta = 0):
        """Spread colors across the zones of a strip, or set the first color on a bulb"""
        if self.snapshot is None:
            await self.refresh()
        await self.protocol.set_colors(self.snapshot, colors, duration)

    async def set_zone(self, index: int, color: HSBK, duration: int | timedelta = 0) -> bool:
        if not self.multizone:
            raise LifxValidationError(f"{self} has no zones")
        return await self.protocol.set_color_zone(self.device, index, color, duration)


# Callback type definitions (moved here after class definitions)
CallbackOnConnect = Callable[[], Awaitable[None]]
CallbackOnDisconnect = Callable[[], Awaitable[None]]
CallbackNewDevice = Callable[[LightDevice], Awaitable[None]]

class _callbacks:
    on_connect: Optional[CallbackOnConnect] = None
    on_disconnect: Optional[CallbackOnDisconnect] = None
    new_device: Optional[CallbackNewDevice] = None

import asyncio
import logging
import time
import traceback
from datetime import timedelta
from typing import Awaitable, Callable, Coroutine, Iterable, Optional, Sequence

from colorama import Fore, Style

from ..color import HSBK, spread_colors, zone_runs
from ..config import LifxConfig
from ..exceptions import LifxResponseError, LifxTimeoutError, LifxValidationError
from ..io import LifxClient, LifxEvent, LifxListener, MessageType, Payload, Request, Response, ResponseType
from ..io.codec import (
    Acknowledgement,
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
from .models import FirmwareVersion, LifxDevice, LightSnapshot, extended_multizone_supported
from .products import ProductCatalog
from .types import Const, ZoneApply

"""
===================================================================================
This module implements the LIFX LAN light operations using lifxcontrol.io.
===================================================================================
"""


def _duration_ms(duration: int | float | timedelta) -> int:
    """Transition duration in milliseconds, checked against the u32 wire field"""
    if isinstance(duration, timedelta):
        duration = duration.total_seconds() * 1000
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise LifxValidationError(f"Duration must be a number of milliseconds or a timedelta, received {duration!r}")
    if not 0 <= duration <= Const.MAX_DURATION_MS:
        raise LifxValidationError(f"Duration must be between 0 and {Const.MAX_DURATION_MS} ms, received {duration}")
    return int(duration)


def _check_kelvin(kelvin: int):
    if not Const.MIN_KELVIN <= kelvin <= Const.MAX_KELVIN:
        raise LifxValidationError(f"Kelvin must be between {Const.MIN_KELVIN} and {Const.MAX_KELVIN}, received {kelvin}")


def _check_zone_range(start: int, end: int):
    if not 0 <= start <= Const.MAX_ZONE_INDEX:
        raise LifxValidationError(f"Zone start index must be between 0 and {Const.MAX_ZONE_INDEX}, received {start}")
    if not start <= end <= Const.MAX_ZONE_INDEX:
        raise LifxValidationError(f"Zone end index must be between {start} and {Const.MAX_ZONE_INDEX}, received {end}")


def _apply_mode(apply: int) -> ZoneApply:
    try:
        return ZoneApply(apply)
    except ValueError:
        raise LifxValidationError(f"Apply mode must be one of {[m.value for m in ZoneApply]}, received {apply!r}") from None


class LifxProtocol:

    def __init__(self,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False,
                 config: Optional[LifxConfig] = None,
                 catalog: Optional[ProductCatalog] = None,
                 error_callback: Optional[Callable[[BaseException], None]] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or LifxConfig()
        self.print_traffic = print_traffic or self.config.print_traffic
        self.catalog = catalog
        self.error_callback = error_callback

        # The client is created on first use
        self.client: Optional[LifxClient] = None

        # Setup event monitoring using a LifxListener
        self.event_listener: Optional[LifxListener] = None
        self.event_task: Optional[asyncio.Task] = None
        self.service_callback: Optional[Callable[..., Awaitable[None]]] = None

        # Requests running in the background
        self._detached: set[asyncio.Task] = set()

    async def __aenter__(self):
        """Async context manager entry"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.aclose()

    async def aclose(self):
        """Stop event monitoring, cancel background requests and close the socket"""
        await self.stop_event_monitoring()
        for task in list(self._detached):
            task.cancel()
        if self._detached:
            await asyncio.gather(*self._detached, return_exceptions=True)
        if self.client and self.client.is_connected():
            await self.client.close()
        self.client = None

    async def connect(self) -> LifxClient:
        """Open the UDP endpoint if it isn't already"""
        if self.client is None or not self.client.is_connected():
            self.client = await LifxClient.create(self.config.listen_ip, self.config.listen_port, logger=self.logger)
        return self.client

    def get_catalog(self) -> ProductCatalog:
        if self.catalog is None:
            self.catalog = ProductCatalog.load(self.config.products_path)
        return self.catalog

    # ============================
    # PACKET SENDING
    # ============================

    async def _send_packet(self,
                           device: Optional[LifxDevice],
                           payload: Payload,
                           ack_required: bool = False,
                           res_required: bool = False,
                           expect: Iterable[int] = (),
                           timeout: Optional[float] = None) -> Optional[Payload]:
        """Send to one device, or broadcast when device is None. Returns the reply payload, or None if none was asked for."""
        client = await self.connect()
        if device is None:
            request = Request(payload=payload, tagged=True, ack_required=ack_required, res_required=res_required)
            addr = (self.config.broadcast_address, self.config.port)
        else:
            request = Request(payload=payload, target=device.mac, ack_required=ack_required, res_required=res_required)
            addr = device.addr

        response: Response = await client.send_request(
            request, addr, expect=expect, timeout=timeout if timeout is not None else self.config.timeout)

        # Work out how many msec we waited for
        wait_time_ms = (time.time() - request.timestamp) * 1000
        if response.response_type == ResponseType.TIMEOUT:
            raw_sent_str = f"[{', '.join(f'0x{b:02X}' for b in request.raw_sent)}]" if request.raw_sent else "[]"
            self.logger.error(f"No reply to {type(payload).__name__} from {addr[0]}:{addr[1]} after {wait_time_ms:.0f}ms {raw_sent_str}")
            raise LifxTimeoutError(f"No response from {addr[0]}:{addr[1]} after {wait_time_ms:.0f}ms")

        if response.response_type == ResponseType.SENT:
            if self.print_traffic:
                print(Fore.MAGENTA + f"SENT:    [{', '.join(f'0x{b:02X}' for b in request.raw_sent)}]" + Style.RESET_ALL)
            return None

        # print_traffic
        if self.print_traffic and request.raw_sent and response.raw_rcvd:
            rtt_ms = (response.timestamp - request.timestamp) * 1000
            print(Fore.MAGENTA + f"REQUEST: [{', '.join(f'0x{b:02X}' for b in request.raw_sent)}]  "
                + Fore.WHITE + Style.DIM + f"RTT: {rtt_ms:.0f}ms".ljust(10)
                + Style.BRIGHT + Fore.CYAN + f"  RESPONSE: [{', '.join(f'0x{b:02X}' for b in response.raw_rcvd)}]"
                + Style.RESET_ALL)

        reply = response.frame.payload
        if isinstance(reply, StateUnhandled):
            raise LifxResponseError(f"{addr[0]} does not handle message type {reply.unhandled_type}")
        return reply

    async def _query(self, device: LifxDevice, payload: Payload, *reply_types: MessageType) -> Payload:
        """Read-only request: ask for the state reply, never an acknowledgement"""
        return await self._send_packet(device, payload, res_required=True, expect=reply_types)

    async def _command(self, device: LifxDevice, payload: Payload, ack: bool) -> bool:
        """Write request. Returns True once acknowledged, or straight away without ack."""
        reply = await self._send_packet(device, payload, ack_required=ack, expect=(MessageType.ACKNOWLEDGEMENT,))
        return reply is None or isinstance(reply, Acknowledgement)

    def detach(self, coro: Coroutine, description: str = "background request") -> asyncio.Task:
        """Run a request in the background. A failure is logged and passed to error_callback."""
        task = asyncio.create_task(coro, name=description)
        self._detached.add(task)
        task.add_done_callback(self._detached_done)
        return task

    def _detached_done(self, task: asyncio.Task):
        self._detached.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self.logger.error(f"{task.get_name()} failed: {exc!r}")
        if self.error_callback:
            try:
                self.error_callback(exc)
            except Exception:
                self.logger.error(traceback.format_exc())

    # ============================
    # EVENT LISTENING
    # ============================

    def set_callbacks(self, service_callback: Optional[Callable[..., Awaitable[None]]] = None):
        self.service_callback = service_callback

    async def start_event_monitoring(self):
        if self.event_task and not self.event_task.done():
            self.logger.debug("Event monitoring already running")
            return
        client = await self.connect()
        self.event_listener = client.listen()
        self.event_task = asyncio.create_task(self._async_event_listener())

    async def _async_event_listener(self):
        """Feed unsolicited messages to _process_lifx_event until stopped"""
        async with self.event_listener:
            async for event in self.event_listener.events():
                try:
                    await self._process_lifx_event(event)
                except Exception as e:
                    self.logger.error(f"Error processing event from {event.ip_address}: {e}")
                    self.logger.error(traceback.format_exc())
                    if self.error_callback:
                        try:
                            self.error_callback(e)
                        except Exception:
                            self.logger.error(traceback.format_exc())

    async def _process_lifx_event(self, event: LifxEvent):
        payload = event.frame.payload
        if self.print_traffic:
            print(Fore.MAGENTA + f"EVENT FROM: {event.ip_address}:{event.ip_port}"
                  + Fore.CYAN + Style.DIM + f"  {payload}" + Style.RESET_ALL)
        match payload:
            case StateService():
                if self.service_callback:
                    await self.service_callback(mac=event.mac,
                                                host=event.ip_address,
                                                service=payload.service,
                                                port=payload.port,
                                                timestamp=event.timestamp)
            case _:
                self.logger.debug(f"Unsolicited {type(payload).__name__} from {event.ip_address}:{event.ip_port}")

    async def stop_event_monitoring(self):
        """Stop listening for events"""
        if self.event_task:
            self.event_task.cancel()
            try:
                await self.event_task
            except asyncio.CancelledError:
                pass
            self.event_task = None
        if self.event_listener:
            await self.event_listener.close()
            self.event_listener = None

    # ============================
    # DISCOVERY
    # ============================

    async def broadcast_discovery(self):
        """Broadcast GetService. Each device's StateService reply arrives on the event path."""
        await self._send_packet(None, GetService())

    async def get_service(self, device: LifxDevice) -> StateService:
        return await self._query(device, GetService(), MessageType.STATE_SERVICE)

    # ============================
    # DEVICE QUERIES
    # ============================

    async def get_label(self, device: LifxDevice) -> str:
        reply: StateLabel = await self._query(device, GetLabel(), MessageType.STATE_LABEL)
        return reply.label

    async def get_version(self, device: LifxDevice) -> StateVersion:
        """Vendor and product ids, to look up in the product catalog"""
        return await self._query(device, GetVersion(), MessageType.STATE_VERSION)

    async def get_host_firmware(self, device: LifxDevice) -> StateHostFirmware:
        return await self._query(device, GetHostFirmware(), MessageType.STATE_HOST_FIRMWARE)

    async def get_firmware_version(self, device: LifxDevice) -> FirmwareVersion:
        reply = await self.get_host_firmware(device)
        return FirmwareVersion(reply.version_major, reply.version_minor)

    # ============================
    # POWER
    # ============================

    async def get_power(self, device: LifxDevice) -> bool:
        reply: LightStatePower = await self._query(device, LightGetPower(), MessageType.LIGHT_STATE_POWER)
        return reply.is_on

    async def set_power(self, device: LifxDevice, on: bool, duration: int | timedelta = 0, ack: bool = True) -> bool:
        ms = _duration_ms(duration)
        level = Const.POWER_ON if on else Const.POWER_OFF
        self.logger.debug(f"Setting power {'on' if on else 'off'} for {device.host}")
        return await self._command(device, LightSetPower(level=level, duration=ms), ack)

    async def turn_on(self, device: LifxDevice, duration: int | timedelta = 0, ack: bool = True) -> bool:
        return await self.set_power(device, True, duration, ack)

    async def turn_off(self, device: LifxDevice, duration: int | timedelta = 0, ack: bool = True) -> bool:
        return await self.set_power(device, False, duration, ack)

    # ============================
    # SINGLE COLOUR
    # ============================

    async def get_light_state(self, device: LifxDevice) -> LightState:
        """Current colour, power and label"""
        return await self._query(device, LightGet(), MessageType.LIGHT_STATE)

    async def set_color(self, device: LifxDevice, color: HSBK, duration: int | timedelta = 0, ack: bool = True) -> bool:
        _check_kelvin(color.kelvin)
        ms = _duration_ms(duration)
        self.logger.debug(f"Setting color {color} for {device.host}")
        return await self._command(device, LightSetColor(color=color, duration=ms), ack)

    async def set_color_rgb(self, device: LifxDevice, r: int, g: int, b: int, kelvin: int,
                            duration: int | timedelta = 0, ack: bool = True) -> bool:
        _check_kelvin(kelvin)
        return await self.set_color(device, HSBK.from_rgb(r, g, b, kelvin), duration, ack)

    # ============================
    # MULTIZONE
    # ============================

    async def get_color_zones(self, device: LifxDevice, start: int, end: int) -> StateMultiZone | StateZone:
        """One page of zones. Asking for a single zone gets a StateZone reply."""
        _check_zone_range(start, end)
        return await self._query(device, GetColorZones(start_index=start, end_index=end),
                                 MessageType.STATE_MULTI_ZONE, MessageType.STATE_ZONE)

    async def get_all_color_zones(self, device: LifxDevice) -> tuple[HSBK, ...]:
        """
        Read every zone, one page at a time.

        The first reply tells us how many zones the device has. Each page advances
        the start index by the number of valid zones that page actually carried.
        """
        colors: list[HSBK] = []
        start = 0
        total: Optional[int] = None
        while total is None or len(colors) < total:
            if start > Const.MAX_ZONE_INDEX:
                raise LifxResponseError(f"{device.host} reports {total} zones, more than can be addressed")
            end = min(start + Const.ZONES_PER_PAGE - 1, Const.MAX_ZONE_INDEX)
            page = await self.get_color_zones(device, start, end)
            if total is None:
                total = page.count
            if page.index != start:
                raise LifxResponseError(f"{device.host} returned zones from {page.index}, expected {start}")
            window = page.colors[:max(0, total - page.index)]
            if not window:
                break
            colors.extend(window)
            start += len(window)
        return tuple(colors)

    async def set_color_zones(self, device: LifxDevice, start: int, end: int, color: HSBK,
                              duration: int | timedelta = 0, apply: ZoneApply = ZoneApply.APPLY,
                              ack: bool = True) -> bool:
        _check_zone_range(start, end)
        _check_kelvin(color.kelvin)
        ms = _duration_ms(duration)
        payload = SetColorZones(start_index=start, end_index=end, color=color, duration=ms, apply=_apply_mode(apply))
        return await self._command(device, payload, ack)

    async def set_color_zone(self, device: LifxDevice, index: int, color: HSBK,
                             duration: int | timedelta = 0, apply: ZoneApply = ZoneApply.APPLY,
                             ack: bool = True) -> bool:
        return await self.set_color_zones(device, index, index, color, duration, apply, ack)

    async def get_extended_color_zones(self, device: LifxDevice) -> StateExtendedColorZones:
        return await self._query(device, GetExtendedColorZones(), MessageType.STATE_EXTENDED_COLOR_ZONES)

    async def set_extended_color_zones(self, device: LifxDevice, colors: Sequence[HSBK],
                                       duration: int | timedelta = 0, index: int = 0,
                                       ack: bool = True) -> bool:
        """Set a run of zones starting at index in one message. Always applied immediately."""
        if not 1 <= len(colors) <= Const.MAX_EXTENDED_ZONES:
            raise LifxValidationError(f"Between 1 and {Const.MAX_EXTENDED_ZONES} colors are required, received {len(colors)}")
        if not 0 <= index <= Const.MAX_EXTENDED_ZONE_INDEX:
            raise LifxValidationError(f"Zone index must be between 0 and {Const.MAX_EXTENDED_ZONE_INDEX}, received {index}")
        for color in colors:
            _check_kelvin(color.kelvin)
        ms = _duration_ms(duration)
        payload = SetExtendedColorZones(duration=ms, apply=ZoneApply.APPLY, index=index, colors=tuple(colors))
        return await self._command(device, payload, ack)

    # ============================
    # RESOLUTION
    # ============================

    async def resolve(self, device: LifxDevice) -> LightSnapshot:
        """Query version, state and firmware, look up the product, then read zones if it has them"""
        version = await self.get_version(device)
        state = await self.get_light_state(device)
        firmware = await self.get_firmware_version(device)

        product = self.get_catalog().lookup(version.vendor, version.product)
        if product is None:
            self.logger.warning(f"Unknown product {version.vendor}/{version.product} at {device.host}")
        extended = extended_multizone_supported(product, firmware, exact=self.config.exact_firmware_match)

        zones: Optional[tuple[HSBK, ...]] = None
        if extended:
            reply = await self.get_extended_color_zones(device)
            zones = reply.colors[:reply.count]
        elif product is not None and product.features.multizone:
            zones = await self.get_all_color_zones(device)

        return LightSnapshot(
            device=device,
            label=state.label,
            power=state.is_on,
            color=state.color,
            firmware=firmware,
            vendor=version.vendor,
            product_id=version.product,
            product=product,
            zones=zones,
            extended_multizone=extended,
        )

    async def set_colors(self, snapshot: LightSnapshot, colors: Sequence[HSBK],
                         duration: int | timedelta = 0, ack: bool = True):
        """
        Spread colors across a light in input order.

        Extended multizone lights get the whole palette in one message, other
        multizone lights get one SetColorZones per color, and anything else is
        set to the first color.
        """
        if not colors:
            raise LifxValidationError("At least one color is required")
        for color in colors:
            _check_kelvin(color.kelvin)
        ms = _duration_ms(duration)
        device = snapshot.device

        if snapshot.extended_multizone and snapshot.zone_count:
            palette = spread_colors(colors, snapshot.zone_count)
            for index in range(0, len(palette), Const.MAX_EXTENDED_ZONES):
                await self.set_extended_color_zones(device, palette[index:index + Const.MAX_EXTENDED_ZONES], ms, index, ack)
        elif snapshot.multizone and snapshot.zone_count:
            for color, zones in zip(colors, zone_runs(len(colors), snapshot.zone_count)):
                await self.set_color_zones(device, zones.start, zones.end, color, ms, ZoneApply.APPLY, ack)
        else:
            await self.set_color(device, colors[0], ms, ack)

    async def set_colors_rgb(self, snapshot: LightSnapshot, colors: Sequence[tuple[int, int, int]], kelvin: int,
                             duration: int | timedelta = 0, ack: bool = True):
        _check_kelvin(kelvin)
        await self.set_colors(snapshot, [HSBK.from_rgb(r, g, b, kelvin) for r, g, b in colors], duration, ack)

"""
LIFX wire-level command client.

This module implements the request/response side of the LIFX LAN protocol using asyncio.
It contains the LifxClient class for sending requests and correlating replies.

Terms:
- Request = A UDP packet sent by the Client to a device (or broadcast to all devices)
- Response = The outcome of a Request: the correlated reply, or SENT/TIMEOUT
- Client = A class which owns the UDP socket, sends Requests and receives replies

Example usage:
async def main():
    async with await LifxClient.create() as client:
        req = Request(payload=LightGet(), target=mac, res_required=True)
        resp = await client.send_request(req, ("192.0.2.10", 56700), expect=(MessageType.LIGHT_STATE,))
        if resp.response_type == ResponseType.ANSWER:
            print("State:", resp.frame.payload)
        elif resp.response_type == ResponseType.TIMEOUT:
            print("Timed out")

asyncio.run(main())
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, Optional, Self, Tuple

from ..exceptions import LifxConnectionError, LifxDecodeError, LifxValidationError
from .codec import Frame, Header, MessageType, Payload, TARGET_ALL, decode_frame, encode_frame
from .event import LifxEvent, LifxListener


# Constants
class ClientConst:
    """Constants for the LifxClient"""
    PORT = 56700
    BROADCAST_ADDRESS = "255.255.255.255"
    DEFAULT_TIMEOUT = 2.0
    MIN_TIMEOUT = 0.01
    MAX_TIMEOUT = 30.0
    # Sources 0 and 1 make devices broadcast their replies
    MIN_SOURCE = 2
    MAX_SOURCE = 0xFFFFFFFF


@dataclass
class Request:
    """Represents a request to be sent to a device"""
    payload: Payload
    target: bytes = TARGET_ALL
    tagged: bool = False
    ack_required: bool = False
    res_required: bool = False
    source: Optional[int] = None
    sequence: Optional[int] = None
    raw_sent: Optional[bytes] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if len(self.target) != 8:
            raise LifxValidationError(f"Request.target must be exactly 8 bytes, got {len(self.target)}")
        if self.tagged:
            self.target = TARGET_ALL

    @property
    def expects_reply(self) -> bool:
        return self.ack_required or self.res_required

    def to_bytes(self) -> bytes:
        """Convert request to wire format"""
        self.raw_sent = encode_frame(
            self.payload,
            source=self.source or 0,
            target=self.target,
            tagged=self.tagged,
            ack_required=self.ack_required,
            res_required=self.res_required,
            sequence=self.sequence or 0,
        )
        return self.raw_sent


class ResponseType(IntEnum):
    """Outcome of a request"""
    SENT = 0x01     # nothing was asked of the device
    ANSWER = 0x02   # a correlated reply arrived
    TIMEOUT = 0x03


@dataclass()
class Response:
    response_type: ResponseType
    frame: Optional[Frame] = None  # None for SENT and TIMEOUT
    raw_rcvd: Optional[bytes] = None
    request: Optional[Request] = None
    addr: Optional[Tuple[str, int]] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class _Pending:
    future: asyncio.Future
    request: Request
    expect: frozenset[int]


# Protocol classes
class LifxDatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, datagram_handler, logger: Optional[logging.Logger] = None):
        self.datagram_handler = datagram_handler
        self.logger = logger or logging.getLogger(__name__)
        self.transport: Optional[asyncio.transports.DatagramTransport] = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.datagram_handler(data, addr)

    def error_received(self, exc):
        self.logger.error(f"Datagram protocol error: {exc}")

    def connection_lost(self, exc):
        if exc:
            self.logger.error(f"Connection lost: {exc}")
        else:
            self.logger.info("Connection closed")


class LifxClient:
    """
    One UDP socket shared by every request. The event loop's datagram callback is
    the only reader; it matches each reply to its waiter by the header source.
      - source is random per request and never reused while that request is pending
      - at most one reply is delivered per request, later ones are dropped
      - anything unmatched goes to the attached LifxListeners
    """

    def __init__(self, listen_ip: str = "0.0.0.0", listen_port: int = 0, logger: Optional[logging.Logger] = None):
        self.listen_ip = listen_ip
        self.listen_port = listen_port
        self.logger = logger or logging.getLogger(__name__)
        self._transport: Optional[asyncio.transports.DatagramTransport] = None
        self._pending: Dict[int, _Pending] = {}
        self._listeners: list[LifxListener] = []
        self._next_seq: int = 0
        self._random = random.Random()
        self._closed = False

    @classmethod
    async def create(cls, listen_ip: str = "0.0.0.0", listen_port: int = 0, logger: Optional[logging.Logger] = None) -> Self:
        self = cls(listen_ip, listen_port, logger)
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                lambda: LifxDatagramProtocol(self._receive_datagram, self.logger),
                local_addr=(listen_ip, listen_port),
                allow_broadcast=True,
            )
        except OSError as e:
            raise LifxConnectionError(f"Unable to open UDP endpoint on {listen_ip}:{listen_port}: {e}") from e
        self._transport = transport
        self.logger.info(f"Listening for LIFX replies on {listen_ip}:{listen_port}")
        return self

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def send_request(self,
                           req: Request,
                           addr: Tuple[str, int],
                           *,
                           expect: Iterable[int] = (),
                           timeout: Optional[float] = None,
                           retries: int = 0) -> Response:
        """
        Send a request and wait for its reply.

        expect lists the message types that complete the request. If empty, an
        Acknowledgement completes an ack_required request. Requests with neither
        ack_required nor res_required return SENT as soon as the datagram is out.
        """
        if self._closed: raise LifxConnectionError("Client is closed")
        if self._transport is None: raise LifxConnectionError("Client has no transport")

        if timeout is None: timeout = ClientConst.DEFAULT_TIMEOUT
        timeout = max(ClientConst.MIN_TIMEOUT, min(timeout, ClientConst.MAX_TIMEOUT))
        if retries < 0: retries = 0

        req.source = self._alloc_source()
        req.sequence = self._alloc_seq()
        wire = req.to_bytes()

        # Fire and forget
        if not req.expects_reply:
            req.timestamp = time.time()
            self._transport.sendto(wire, addr)
            return Response(ResponseType.SENT, request=req, addr=addr)

        expected = frozenset(expect)
        if not expected and req.ack_required:
            expected = frozenset({MessageType.ACKNOWLEDGEMENT})

        # Create a future to await the response
        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        self._pending[req.source] = _Pending(fut, req, expected)

        # Send the request and wait for the future to complete
        try:
            for i in range(retries + 1):
                req.timestamp = time.time() # Update timestamp when sending the request
                self._transport.sendto(wire, addr)
                try:
                    return await asyncio.wait_for(asyncio.shield(fut), timeout=timeout)
                except asyncio.TimeoutError:
                    if i == retries:
                        break
                    self.logger.debug(f"No reply to source {req.source:#010x} from {addr[0]}, retrying")
            # Retries exhausted
            return Response(ResponseType.TIMEOUT, request=req, addr=addr)
        finally:
            # Delete the pending entry whatever happened, so a late reply is discarded
            self._pending.pop(req.source, None)
            if not fut.done():
                fut.cancel()

    def _receive_datagram(self, datagram: bytes, addr: Tuple[str, int]):
        """Demultiplex one datagram. Never raises: bad datagrams are logged and dropped."""
        try:
            header = Header.from_bytes(datagram)
        except LifxDecodeError as e:
            self.logger.debug(f"Dropped datagram from {addr[0]}:{addr[1]}: {e}")
            return

        pending = self._pending.get(header.source)
        try:
            frame = decode_frame(datagram, header)
        except LifxDecodeError as e:
            wanted = pending and (header.message_type in pending.expect
                                  or header.message_type == MessageType.STATE_UNHANDLED)
            if wanted and not pending.future.done():
                pending.future.set_exception(e)
            else:
                self.logger.warning(f"Dropped malformed type {header.message_type} from {addr[0]}:{addr[1]}: {e}")
            return

        if pending:
            if frame.message_type in pending.expect or frame.message_type == MessageType.STATE_UNHANDLED:
                if not pending.future.done():
                    pending.future.set_result(Response(
                        ResponseType.ANSWER, frame=frame, raw_rcvd=datagram, request=pending.request, addr=addr))
            else:
                self.logger.debug(f"Ignored type {frame.message_type} for source {header.source:#010x}, waiting for {sorted(pending.expect)}")
            return

        event = LifxEvent(frame=frame, ip_address=addr[0], ip_port=addr[1])
        for listener in list(self._listeners):
            listener.put(event)

    def _alloc_source(self) -> int:
        """Allocate a random source not used by any pending request"""
        for _ in range(256):
            proposed = self._random.randint(ClientConst.MIN_SOURCE, ClientConst.MAX_SOURCE)
            if proposed not in self._pending:
                return proposed
        raise RuntimeError("Unable to allocate a free source identifier, which is highly improbable")

    def _alloc_seq(self) -> int:
        seq = self._next_seq
        self._next_seq = (self._next_seq + 1) & 0xFF
        return seq

    def listen(self) -> LifxListener:
        """Attach a new listener for unsolicited messages"""
        listener = LifxListener(on_close=self._remove_listener, logger=self.logger)
        self._listeners.append(listener)
        return listener

    def _remove_listener(self, listener: LifxListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def is_connected(self) -> bool:
        """Check if client is connected"""
        return self._transport is not None and not self._closed

    async def close(self):
        """Close the client"""
        for listener in list(self._listeners):
            await listener.close()
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_exception(LifxConnectionError("Client closed"))
        if self._transport:
            self._transport.close()
        self._closed = True

"""
LIFX wire-level event listener.

Devices send datagrams that no pending request is waiting for, most commonly
StateService announcements in reply to a broadcast discovery. The LifxClient
hands each of these to every attached LifxListener.

Terms:
- Event = A decoded datagram that did not match a pending request
- Listener = A queue which receives Events from a LifxClient

Example usage:
async def listen_for_events(client: LifxClient):
    async with client.listen() as listener:
        async for event in listener.events(timeout=5.0):
            print(f"Event: {event.frame.payload} from {event.ip_address}")
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Optional

from .codec import Frame


@dataclass(frozen=True)
class LifxEvent:
    """An unsolicited message received from a device"""
    frame: Frame
    ip_address: str
    ip_port: int
    timestamp: float = field(default_factory=time.time)

    @property
    def mac(self) -> bytes:
        return self.frame.target


class LifxListener:
    def __init__(self,
                 on_close: Optional[Callable[["LifxListener"], None]] = None,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._on_close = on_close
        self._stop_event = asyncio.Event()
        # None is queued on close to wake any waiting consumer
        self._event_queue: asyncio.Queue[Optional[LifxEvent]] = asyncio.Queue()

    def put(self, event: LifxEvent):
        """Queue an event. Called by the client's receive path, must not block."""
        if self._stop_event.is_set():
            return
        self._event_queue.put_nowait(event)

    def is_listening(self) -> bool:
        return not self._stop_event.is_set()

    async def close(self):
        """Stop listening and detach from the client"""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        if self._on_close:
            self._on_close(self)

        # Clear any remaining events in queue
        while not self._event_queue.empty():
            try:
                self._event_queue.get_nowait()
                self._event_queue.task_done()
            except asyncio.QueueEmpty:
                break
        self._event_queue.put_nowait(None)

    async def events(self, timeout: Optional[float] = None) -> AsyncGenerator[LifxEvent, None]:
        """Async generator yielding events as they arrive. With a timeout, stops after that long without an event."""
        while not self._stop_event.is_set():
            try:
                event = await asyncio.wait_for(self._event_queue.get(), timeout=timeout)
            except asyncio.TimeoutError:
                if timeout is not None:
                    break
                continue
            if event is None:
                break
            yield event
            self._event_queue.task_done()

    async def get_event(self, timeout: Optional[float] = None) -> Optional[LifxEvent]:
        """Get next event from queue"""
        try:
            return await asyncio.wait_for(self._event_queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def get_events(self, count: int, timeout: Optional[float] = None) -> list[LifxEvent]:
        """Get multiple events from queue"""
        events = []
        for _ in range(count):
            event = await self.get_event(timeout)
            if event is None:
                break
            events.append(event)
        return events

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

# notify_relay/sink.py
from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from notify_relay.errors import SinkClosedError

_CLOSED = object()


class Sink(Protocol):
    """Write handle for one streaming connection."""

    @property
    def closed(self) -> bool: ...

    async def send(self, frame: str) -> None: ...

    def close(self) -> None: ...


class QueueSink:
    """
    Bounded per-connection buffer between producers and the SSE response.
    Producers call `send`; the response generator drains it via `receive`.
    """

    def __init__(self, maxsize: int = 256) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: str) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            # a reader this far behind is treated as gone
            self.close()
            raise SinkClosedError("sink buffer full")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # drop pending frames so the wake-up marker always fits
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next frame, or None once closed. Raises asyncio.TimeoutError on timeout."""
        if self._closed and self._queue.empty():
            return None
        item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        if item is _CLOSED:
            return None
        return item

    def pending(self) -> int:
        return self._queue.qsize()

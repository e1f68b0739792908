# notify_relay/connection.py
from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional, Set

from notify_relay.demo import DemoPlayback
from notify_relay.logger import get_logger
from notify_relay.registry import ClientRegistry
from notify_relay.schemas import ConnectionAck, new_id, to_frame
from notify_relay.settings import Settings
from notify_relay.sink import QueueSink

log = get_logger("notify_relay.connection")

KEEPALIVE_FRAME = ": keep-alive\n\n"


class ConnectionState(str, Enum):
    opening = "OPENING"
    active = "ACTIVE"
    closed = "CLOSED"


@dataclass(eq=False)
class Connection:
    connection_id: str
    sink: QueueSink
    state: ConnectionState = ConnectionState.opening
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # scheduled demo deliveries; cancelled on close
    tasks: List[asyncio.Task] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.state is ConnectionState.active


def generate_connection_id() -> str:
    return f"client_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class ConnectionManager:
    """
    Owns every SSE connection from open to close. The only component that
    adds or removes registry entries for live connections.
    """

    def __init__(
        self,
        registry: ClientRegistry,
        settings: Settings,
        demo: Optional[DemoPlayback] = None,
        upstream_enabled: Callable[[], bool] = lambda: False,
    ) -> None:
        self._registry = registry
        self._settings = settings
        self._demo = demo
        self._upstream_enabled = upstream_enabled
        self._open: Set[Connection] = set()

    @property
    def open_connections(self) -> int:
        return len(self._open)

    async def open(self, client_id: Optional[str] = None) -> Connection:
        connection_id = client_id or generate_connection_id()
        conn = Connection(connection_id, QueueSink(maxsize=self._settings.SSE_QUEUE_SIZE))

        # ack goes in first so it always precedes any broadcast frame
        ack = ConnectionAck(
            id=new_id("ack_"),
            timestamp=datetime.now(timezone.utc),
            connection_id=connection_id,
            upstream_enabled=self._upstream_enabled(),
            demo_mode=self._settings.DEMO_MODE,
        )
        await conn.sink.send(to_frame(ack))

        self._registry.register(connection_id, conn.sink)
        conn.state = ConnectionState.active
        self._open.add(conn)

        if self._settings.DEMO_MODE and self._demo is not None:
            conn.tasks.extend(self._demo.schedule(conn))
        return conn

    def close(self, conn: Connection, reason: str = "disconnect") -> None:
        if conn.state is ConnectionState.closed:
            return
        conn.state = ConnectionState.closed
        for task in conn.tasks:
            task.cancel()
        conn.tasks.clear()
        conn.sink.close()
        self._registry.unregister(conn.connection_id, conn.sink)
        self._open.discard(conn)
        log.info("Connection %s closed (%s); open=%d", conn.connection_id, reason, len(self._open))

    async def stream(self, conn: Connection) -> AsyncIterator[str]:
        """SSE body for `conn`. Closes the connection however the stream ends."""
        reason = "disconnect"
        try:
            while True:
                try:
                    frame = await conn.sink.receive(timeout=self._settings.SSE_HEARTBEAT_SECONDS)
                except asyncio.TimeoutError:
                    yield KEEPALIVE_FRAME
                    continue
                if frame is None:
                    reason = "sink closed"
                    break
                yield frame
        except Exception:
            reason = "error"
            log.exception("Stream for %s failed", conn.connection_id)
            raise
        finally:
            self.close(conn, reason)

    def shutdown(self) -> None:
        for conn in list(self._open):
            self.close(conn, "shutdown")


__all__ = ["Connection", "ConnectionManager", "ConnectionState", "generate_connection_id"]

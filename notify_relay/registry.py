# notify_relay/registry.py
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from notify_relay.logger import get_logger
from notify_relay.sink import Sink

log = get_logger("notify_relay.registry")


class ClientRegistry:
    """
    connection id -> sink for every open SSE stream.

    Runs on a single event loop: no method awaits, so each one is atomic
    between suspension points. Broadcasts iterate a `snapshot()` copy.
    """

    def __init__(self) -> None:
        self._clients: Dict[str, Sink] = {}

    def register(self, connection_id: str, sink: Sink) -> None:
        before = len(self._clients)
        replaced = self._clients.get(connection_id)
        self._clients[connection_id] = sink
        if replaced is not None and replaced is not sink:
            log.warning("Client %s replaced by a new connection; total=%d", connection_id, len(self._clients))
        else:
            log.info("Client registered: %s; total %d -> %d", connection_id, before, len(self._clients))

    def unregister(self, connection_id: str, sink: Optional[Sink] = None) -> bool:
        """Remove `connection_id`. With `sink`, only if it is still the registered one."""
        current = self._clients.get(connection_id)
        if current is None or (sink is not None and current is not sink):
            return False
        before = len(self._clients)
        del self._clients[connection_id]
        log.info("Client unregistered: %s; total %d -> %d", connection_id, before, len(self._clients))
        return True

    def snapshot(self) -> List[Tuple[str, Sink]]:
        return list(self._clients.items())

    def ids(self) -> List[str]:
        return list(self._clients)

    def size(self) -> int:
        return len(self._clients)

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._clients


__all__ = ["ClientRegistry"]

# notify_relay/broadcast.py
from __future__ import annotations

from typing import List, Tuple

from notify_relay.logger import get_logger
from notify_relay.registry import ClientRegistry
from notify_relay.schemas import EventEnvelope, to_frame
from notify_relay.sink import Sink

log = get_logger("notify_relay.broadcast")


class Broadcaster:
    def __init__(self, registry: ClientRegistry) -> None:
        self._registry = registry

    async def broadcast(self, envelope: EventEnvelope) -> int:
        """
        Write `envelope` to every registered sink and return how many writes
        succeeded. A sink that fails is dropped from the registry; the rest
        still get the frame.
        """
        frame = to_frame(envelope)
        clients = self._registry.snapshot()
        if not clients:
            log.info("No clients connected; envelope %s not delivered", envelope.id)
            return 0

        sent = 0
        stale: List[Tuple[str, Sink]] = []
        for connection_id, sink in clients:
            try:
                await sink.send(frame)
                sent += 1
            except Exception as e:
                log.warning("Send to %s failed: %s", connection_id, e)
                stale.append((connection_id, sink))

        for connection_id, sink in stale:
            self._registry.unregister(connection_id, sink)
            sink.close()
        if stale:
            log.info("Pruned %d stale client(s); total=%d", len(stale), self._registry.size())

        log.info("Delivered %s (%s) to %d client(s)", envelope.id, envelope.origin.value if envelope.origin else "-", sent)
        return sent


__all__ = ["Broadcaster"]

# notify_relay/demo.py
"""Scripted notifications played to each new connection in demo mode.

Playback is private to one connection: it writes straight to that
connection's sink and never goes through the registry or the broadcaster.
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, List, NamedTuple, Tuple

from notify_relay.errors import SinkClosedError
from notify_relay.logger import get_logger
from notify_relay.schemas import Origin, Severity, build_notification, new_id, to_frame
from notify_relay.settings import Settings

if TYPE_CHECKING:
    from notify_relay.connection import Connection

log = get_logger("notify_relay.demo")


class DemoNotification(NamedTuple):
    title: str
    message: str
    severity: Severity
    id_prefix: str = "demo_"


WELCOME = DemoNotification(
    "Welcome to demo mode",
    "This is a demo environment. Sample notifications will appear here.",
    Severity.info,
    "demo_welcome_",
)

SAMPLES: Tuple[DemoNotification, ...] = (
    DemoNotification("Tanaka", "Thanks for your work! I went through the documents, thank you.", Severity.info),
    DemoNotification("Sato", "Tomorrow's meeting starts at 3 pm, right?", Severity.info),
    DemoNotification("Yamada", "Want to grab lunch? Apparently a new cafe just opened.", Severity.success),
    DemoNotification("Suzuki", "Checked the issue from earlier. Looks like there's no problem!", Severity.success),
)


class DemoPlayback:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def script(self) -> List[Tuple[float, DemoNotification]]:
        """(delay from connection open, notification), in playback order."""
        s = self._settings
        items = [(s.DEMO_WELCOME_DELAY_SECONDS, WELCOME)]
        for i, sample in enumerate(SAMPLES):
            items.append((s.DEMO_FIRST_DELAY_SECONDS + i * s.DEMO_INTERVAL_SECONDS, sample))
        return items

    def schedule(self, conn: "Connection") -> List[asyncio.Task]:
        tasks = [
            asyncio.create_task(self._deliver(conn, delay, item), name=f"demo:{conn.connection_id}:{i}")
            for i, (delay, item) in enumerate(self.script())
        ]
        log.info("Scheduled %d demo notification(s) for %s", len(tasks), conn.connection_id)
        return tasks

    async def _deliver(self, conn: "Connection", delay: float, item: DemoNotification) -> None:
        await asyncio.sleep(delay)
        if not conn.is_active:
            return
        envelope = build_notification(
            item.message,
            origin=Origin.demo,
            title=item.title,
            severity=item.severity,
            id=new_id(item.id_prefix),
        )
        try:
            await conn.sink.send(to_frame(envelope))
        except SinkClosedError:
            log.debug("Demo notification for %s skipped; sink closed", conn.connection_id)

# notify_relay/adapters.py
"""Inbound adapters: turn producer input into envelopes for the broadcaster.

* ``DirectPublisher``      POST /notify
* ``UpstreamPullAdapter``  messages consumed from the broker queue
* ``UpstreamPushAdapter``  POST /pubsub/push

Pull drops what it cannot parse (the transport acks regardless); push
raises so the broker's push retry can redeliver.
"""
from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone
from typing import Any, Dict, Protocol

import orjson
from pydantic import ValidationError

from notify_relay.broadcast import Broadcaster
from notify_relay.errors import (
    FeatureDisabledError,
    MalformedMessageError,
    NotificationValidationError,
)
from notify_relay.logger import get_logger
from notify_relay.schemas import (
    NotifyRequest,
    Origin,
    PushRequest,
    UpstreamMessage,
    build_notification,
    envelope_from_payload,
)
from notify_relay.settings import Settings

log = get_logger("notify_relay.adapters")


class UpstreamPublisher(Protocol):
    @property
    def enabled(self) -> bool: ...

    async def publish(self, payload: Dict[str, Any]) -> str: ...


class DirectPublisher:
    def __init__(self, broadcaster: Broadcaster, upstream: UpstreamPublisher, settings: Settings) -> None:
        self._broadcaster = broadcaster
        self._upstream = upstream
        self._settings = settings

    async def publish(self, req: NotifyRequest) -> Dict[str, Any]:
        if self._settings.DEMO_MODE:
            log.warning("Rejected /notify: demo mode")
            raise FeatureDisabledError("Sending notifications is disabled in demo mode")

        # validates message/type before anything leaves the process
        envelope = build_notification(req.message, origin=Origin.direct, title=req.title, severity=req.type)

        if self._upstream.enabled:
            message_id = await self._upstream.publish(
                {
                    "title": envelope.title,
                    "message": envelope.body,
                    "type": envelope.severity.value,
                    "timestamp": envelope.timestamp.isoformat(),
                }
            )
            return {"success": True, "via": "upstream", "messageId": message_id}

        sent = await self._broadcaster.broadcast(envelope)
        return {"success": True, "via": "direct", "id": envelope.id, "sentCount": sent}


def _decode_json(data: bytes) -> Any:
    return orjson.loads(data)


class UpstreamPullAdapter:
    def __init__(self, broadcaster: Broadcaster) -> None:
        self._broadcaster = broadcaster

    async def handle(self, message: UpstreamMessage) -> None:
        try:
            payload = _decode_json(message.data)
            envelope = envelope_from_payload(
                payload,
                origin=Origin.upstream_pull,
                id=message.message_id,
                timestamp=message.publish_time,
            )
        except (orjson.JSONDecodeError, NotificationValidationError) as e:
            log.error("Dropping malformed upstream message %s: %s", message.message_id, e)
            return
        log.info("Upstream message received: %s", message.message_id)
        await self._broadcaster.broadcast(envelope)


class UpstreamPushAdapter:
    def __init__(self, broadcaster: Broadcaster, settings: Settings) -> None:
        self._broadcaster = broadcaster
        self._settings = settings

    async def handle(self, body: Any) -> int:
        if self._settings.DEMO_MODE:
            log.warning("Rejected push delivery: demo mode")
            raise FeatureDisabledError("Demo mode")
        if not isinstance(body, dict) or not body.get("message"):
            raise MalformedMessageError("Invalid push message", status_code=400)

        try:
            req = PushRequest.model_validate(body)
            assert req.message is not None
            raw = base64.b64decode(req.message.data, validate=True)
            envelope = envelope_from_payload(
                _decode_json(raw),
                origin=Origin.upstream_push,
                id=req.message.message_id,
                timestamp=req.message.publish_time or datetime.now(timezone.utc),
            )
        except (ValidationError, binascii.Error, orjson.JSONDecodeError, NotificationValidationError) as e:
            log.error("Push delivery failed: %s", e)
            raise MalformedMessageError(str(e)) from e

        log.info("Push message received: %s", envelope.id)
        return await self._broadcaster.broadcast(envelope)


__all__ = ["DirectPublisher", "UpstreamPullAdapter", "UpstreamPushAdapter", "UpstreamPublisher"]

# notify_relay/schemas.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, model_validator

from notify_relay.errors import NotificationValidationError

DEFAULT_TITLE = "Notification"


class EnvelopeKind(str, Enum):
    connection_ack = "connection-ack"
    notification = "notification"


class Severity(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class Origin(str, Enum):
    direct = "direct"
    upstream_pull = "upstream-pull"
    upstream_push = "upstream-push"
    demo = "demo"


# --- Envelopes -----------------------------------------------------------------

class EventEnvelope(BaseModel):
    """
    The unit of delivery written to every SSE sink.
    Frozen: the broadcaster serializes it once and never mutates it.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: EnvelopeKind = EnvelopeKind.notification
    id: str
    title: str = DEFAULT_TITLE
    body: str
    severity: Severity = Severity.info
    timestamp: datetime
    origin: Optional[Origin] = None

    @model_validator(mode="after")
    def _notification_has_body(self) -> "EventEnvelope":
        if self.kind is EnvelopeKind.notification and not self.body.strip():
            raise ValueError("notification body must not be empty")
        return self


class ConnectionAck(EventEnvelope):
    kind: EnvelopeKind = EnvelopeKind.connection_ack
    title: str = "Connected"
    body: str = "Connection established"
    connection_id: str = Field(alias="connectionId")
    upstream_enabled: bool = Field(default=False, alias="upstreamEnabled")
    demo_mode: bool = Field(default=False, alias="demoMode")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def build_notification(
    body: Optional[str],
    *,
    origin: Origin,
    title: Optional[str] = None,
    severity: Union[Severity, str, None] = None,
    id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> EventEnvelope:
    """Validated constructor for notification envelopes.

    Raises NotificationValidationError on a missing body or unknown severity.
    """
    if not isinstance(body, str) or not body.strip():
        raise NotificationValidationError("message is required")
    try:
        sev = Severity(severity) if severity else Severity.info
    except ValueError:
        raise NotificationValidationError(f"unknown notification type: {severity!r}")

    return EventEnvelope(
        kind=EnvelopeKind.notification,
        id=str(id) if id else new_id(),
        title=title if isinstance(title, str) and title.strip() else DEFAULT_TITLE,
        body=body,
        severity=sev,
        timestamp=timestamp or _now(),
        origin=origin,
    )


def envelope_from_payload(
    payload: Any,
    *,
    origin: Origin,
    id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> EventEnvelope:
    """Map a broker payload `{title?, message, type?}` onto an envelope."""
    if not isinstance(payload, dict):
        raise NotificationValidationError("payload must be a JSON object")
    return build_notification(
        payload.get("message"),
        origin=origin,
        title=payload.get("title"),
        severity=payload.get("type"),
        id=id,
        timestamp=timestamp,
    )


def to_frame(envelope: EventEnvelope) -> str:
    """Serialize an envelope as one SSE `data:` event."""
    doc = envelope.model_dump(mode="json", by_alias=True, exclude_none=True)
    return f"data: {orjson.dumps(doc).decode()}\n\n"


# --- HTTP payloads -------------------------------------------------------------

class NotifyRequest(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    type: Optional[str] = None


class PushMessage(BaseModel):
    """Broker push delivery: base64 `data` plus metadata."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    data: str
    message_id: Optional[str] = Field(default=None, alias="messageId")
    publish_time: Optional[datetime] = Field(default=None, alias="publishTime")
    attributes: Dict[str, str] = Field(default_factory=dict)


class PushRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: Optional[PushMessage] = None
    subscription: Optional[str] = None


class UpstreamMessage(BaseModel):
    """A message pulled from the broker, before acknowledgement."""
    message_id: str
    data: bytes
    publish_time: datetime

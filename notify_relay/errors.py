"""Error taxonomy for the relay.

Each error carries the HTTP status the API layer renders it with; the
exception handler in :mod:`notify_relay.main` turns them into
``{"error": ...}`` JSON bodies.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base exception for all relay errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, **extra: Any) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra: Dict[str, Any] = extra
        super().__init__(message)

    def to_content(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class NotificationValidationError(RelayError):
    """A required field is missing or has an unknown value."""

    status_code = 400


class FeatureDisabledError(RelayError):
    """The endpoint is switched off in demo mode."""

    status_code = 403

    def __init__(self, message: str = "Not available in demo mode") -> None:
        super().__init__(message, demoMode=True)


class UpstreamError(RelayError):
    """The message broker rejected a publish."""

    status_code = 500


class MalformedMessageError(RelayError):
    """A broker-delivered payload could not be decoded.

    Raised with 500 for push delivery so the broker retries it.
    """

    status_code = 500


class SinkClosedError(Exception):
    """Write attempted on a connection sink that is closed or overflowing."""

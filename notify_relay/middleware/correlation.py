# notify_relay/middleware/correlation.py
import contextvars
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

request_id_var = contextvars.ContextVar("request_id", default="-")

log = logging.getLogger("notify_relay.http")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an x-request-id and log REQ/RES lines.

    For /events the RES line is written once headers are sent, not when the
    stream ends.
    """

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = rid
        token = request_id_var.set(rid)
        start = time.time()

        log.info(
            "REQ method=%s path=%s query=%s client=%s",
            request.method,
            request.url.path,
            str(request.url.query),
            request.client.host if request.client else None,
        )
        try:
            response = await call_next(request)
            dur_ms = int((time.time() - start) * 1000)
            log.info("RES status=%s dur_ms=%s path=%s", response.status_code, dur_ms, request.url.path)
            response.headers["x-request-id"] = rid
            return response
        except Exception:
            dur_ms = int((time.time() - start) * 1000)
            log.exception("ERR dur_ms=%s path=%s", dur_ms, request.url.path)
            raise
        finally:
            request_id_var.reset(token)

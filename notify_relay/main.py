# notify_relay/main.py
from __future__ import annotations

from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from notify_relay.adapters import DirectPublisher, UpstreamPullAdapter, UpstreamPushAdapter
from notify_relay.broadcast import Broadcaster
from notify_relay.connection import ConnectionManager
from notify_relay.demo import DemoPlayback
from notify_relay.errors import NotificationValidationError, RelayError
from notify_relay.events.rabbit import RabbitTransport
from notify_relay.logger import logger
from notify_relay.middleware.correlation import RequestLoggingMiddleware
from notify_relay.registry import ClientRegistry
from notify_relay.routers.health_routes import router as health_router
from notify_relay.routers.notify_routes import router as notify_router
from notify_relay.routers.stream_routes import router as stream_router
from notify_relay.settings import Settings, settings as default_settings

ENDPOINTS = (
    ("GET", "/events", "SSE stream"),
    ("POST", "/notify", "publish a notification"),
    ("POST", "/pubsub/push", "broker push delivery"),
    ("GET", "/clients", "connected client ids"),
    ("GET", "/health", "health check"),
    ("GET", "/api/config", "mode discovery"),
)


def _log_banner(s: Settings, mode: str) -> None:
    lines = [
        f"{s.SERVICE_NAME} listening on http://{s.HOST}:{s.PORT}",
        f"  project:  {s.PROJECT_ID or 'not set'}",
        f"  exchange: {s.RABBITMQ_EXCHANGE}",
        f"  mode:     {mode}",
    ]
    lines += [f"  {method:<5} {path:<14} {desc}" for method, path, desc in ENDPOINTS]
    logger.info("\n".join(lines))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    s = settings or default_settings
    app = FastAPI(title=s.SERVICE_NAME, version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=s.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    registry = ClientRegistry()
    broadcaster = Broadcaster(registry)
    transport = RabbitTransport(s)

    app.state.settings = s
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.transport = transport
    app.state.connections = ConnectionManager(
        registry,
        s,
        demo=DemoPlayback(s),
        upstream_enabled=lambda: transport.enabled,
    )
    app.state.direct_publisher = DirectPublisher(broadcaster, transport, s)
    app.state.pull_adapter = UpstreamPullAdapter(broadcaster)
    app.state.push_adapter = UpstreamPushAdapter(broadcaster, s)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # malformed bodies get the same 400 {"error": ...} shape as missing fields
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        err = NotificationValidationError(f"{where or 'body'}: {first.get('msg', 'invalid request')}")
        logger.warning("%s %s -> 400: %s", request.method, request.url.path, err.message)
        return JSONResponse(status_code=err.status_code, content=err.to_content())

    @app.on_event("startup")
    async def on_startup():
        logger.info("Starting %s ...", s.SERVICE_NAME)
        await transport.start(app.state.pull_adapter.handle)
        mode = "demo" if s.DEMO_MODE else ("upstream" if transport.enabled else "local")
        _log_banner(s, mode)

    @app.on_event("shutdown")
    async def on_shutdown():
        logger.info("Shutting down %s ...", s.SERVICE_NAME)
        app.state.connections.shutdown()
        await transport.stop()
        logger.info("Shutdown complete")

    app.include_router(stream_router)
    app.include_router(notify_router)
    app.include_router(health_router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run(
        "notify_relay.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
    )


if __name__ == "__main__":
    run()

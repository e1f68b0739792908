# notify_relay/routers/notify_routes.py
from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import PlainTextResponse

from notify_relay.schemas import NotifyRequest

router = APIRouter(tags=["notify"])


@router.post("/notify")
async def notify(payload: NotifyRequest, request: Request):
    """
    Publish a notification. Goes through the broker when it is connected,
    otherwise straight to the connected clients.
    Example body: {"title": "Deploy", "message": "v2 is live", "type": "success"}
    """
    return await request.app.state.direct_publisher.publish(payload)


@router.post("/pubsub/push")
async def pubsub_push(request: Request, body: Any = Body(None)):
    await request.app.state.push_adapter.handle(body)
    return PlainTextResponse("OK", status_code=200)

# notify_relay/routers/stream_routes.py
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

router = APIRouter(tags=["stream"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/events")
async def events(request: Request, clientId: Optional[str] = Query(None, description="Client-chosen connection id")):
    """
    SSE stream. The first frame is the connection ack; after that the client
    gets every broadcast (and, in demo mode, its own scripted notifications).
    """
    manager = request.app.state.connections
    conn = await manager.open(clientId)
    return StreamingResponse(manager.stream(conn), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/clients")
async def clients(request: Request):
    ids = request.app.state.registry.ids()
    return {"clients": ids, "count": len(ids)}

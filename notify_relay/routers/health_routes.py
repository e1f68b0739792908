# notify_relay/routers/health_routes.py
from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


def current_mode(request: Request) -> str:
    if request.app.state.settings.DEMO_MODE:
        return "demo"
    return "upstream" if request.app.state.transport.enabled else "local"


@router.get("/health")
async def health(request: Request):
    state = request.app.state
    return {
        "status": "ok",
        "connections": state.registry.size(),
        "upstreamEnabled": state.transport.enabled,
        "projectId": state.settings.PROJECT_ID or "not set",
        "mode": current_mode(request),
    }


@router.get("/api/config")
async def api_config(request: Request):
    return {"mode": current_mode(request), "demoMode": request.app.state.settings.DEMO_MODE}

import base64

import orjson
import pytest

from notify_relay.routers.stream_routes import SSE_HEADERS
from tests.fakes import FakeSink

pytestmark = pytest.mark.anyio


async def test_health(client):
    res = await client.get("/health")
    assert res.status_code == 200
    assert res.json() == {
        "status": "ok",
        "connections": 0,
        "upstreamEnabled": False,
        "projectId": "not set",
        "mode": "local",
    }
    assert res.headers["x-request-id"]


async def test_request_id_is_echoed(client):
    res = await client.get("/health", headers={"x-request-id": "rid-123"})
    assert res.headers["x-request-id"] == "rid-123"


async def test_api_config_reports_mode(client, demo_client):
    assert (await client.get("/api/config")).json() == {"mode": "local", "demoMode": False}
    assert (await demo_client.get("/api/config")).json() == {"mode": "demo", "demoMode": True}


async def test_clients_lists_registry_after_broadcasts(client, app):
    reg = app.state.registry
    a, b = FakeSink(), FakeSink()
    reg.register("A", a)
    reg.register("B", b)

    res = await client.post("/notify", json={"message": "first"})
    assert res.json()["sentCount"] == 2

    reg.unregister("A")
    await client.post("/notify", json={"message": "second"})

    assert [e["body"] for e in a.events()] == ["first"]
    assert [e["body"] for e in b.events()] == ["first", "second"]
    assert (await client.get("/clients")).json() == {"clients": ["B"], "count": 1}
    assert (await client.get("/health")).json()["connections"] == 1


async def test_notify_direct(client, app):
    sink = FakeSink()
    app.state.registry.register("viewer", sink)
    res = await client.post("/notify", json={"title": "Hi", "message": "hello", "type": "warning"})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["via"] == "direct"
    (event,) = sink.events()
    assert event["id"] == body["id"]
    assert (event["title"], event["body"], event["severity"], event["origin"]) == ("Hi", "hello", "warning", "direct")


async def test_notify_requires_message(client, app):
    sink = FakeSink()
    app.state.registry.register("viewer", sink)
    res = await client.post("/notify", json={"title": "Hi"})
    assert res.status_code == 400
    assert "error" in res.json()
    assert sink.frames == []


async def test_notify_forbidden_in_demo_mode(demo_client, demo_app):
    sink = FakeSink()
    demo_app.state.registry.register("viewer", sink)
    res = await demo_client.post("/notify", json={"message": "hello"})
    assert res.status_code == 403
    assert res.json()["demoMode"] is True
    assert sink.frames == []


async def test_push_forbidden_in_demo_mode(demo_client, demo_app):
    sink = FakeSink()
    demo_app.state.registry.register("viewer", sink)
    data = base64.b64encode(orjson.dumps({"message": "M"})).decode()
    res = await demo_client.post("/pubsub/push", json={"message": {"data": data}})
    assert res.status_code == 403
    assert sink.frames == []


async def test_push_ok(client, app):
    sink = FakeSink()
    app.state.registry.register("viewer", sink)
    data = base64.b64encode(orjson.dumps({"title": "T", "message": "M", "type": "error"})).decode()
    res = await client.post(
        "/pubsub/push",
        json={"message": {"data": data, "messageId": "42", "publishTime": "2024-01-01T00:00:00Z"}},
    )
    assert res.status_code == 200
    assert res.text == "OK"
    (event,) = sink.events()
    assert event["id"] == "42"
    assert event["origin"] == "upstream-push"
    assert event["severity"] == "error"


async def test_push_missing_message(client):
    res = await client.post("/pubsub/push", json={"subscription": "s"})
    assert res.status_code == 400


async def test_push_bad_payload_asks_for_redelivery(client):
    res = await client.post("/pubsub/push", json={"message": {"data": "!!!"}})
    assert res.status_code == 500
    assert "error" in res.json()


async def test_events_route_opens_stream(app):
    # exercised without a transport: the body never ends on its own
    from notify_relay.routers.stream_routes import events
    from starlette.requests import Request

    request = Request({"type": "http", "app": app, "method": "GET", "path": "/events", "headers": []})
    response = await events(request, clientId="web-1")

    assert response.media_type == "text/event-stream"
    for key, value in SSE_HEADERS.items():
        assert response.headers[key] == value
    assert app.state.registry.ids() == ["web-1"]

    first = await response.body_iterator.__anext__()
    assert orjson.loads(first[len("data: "):])["kind"] == "connection-ack"
    await response.body_iterator.aclose()
    assert app.state.registry.ids() == []


async def test_notify_non_string_message_is_bad_request(client, app):
    sink = FakeSink()
    app.state.registry.register("viewer", sink)
    res = await client.post("/notify", json={"message": 123})
    assert res.status_code == 400
    body = res.json()
    assert "error" in body
    assert "detail" not in body
    assert sink.frames == []


async def test_notify_invalid_json_is_bad_request(client, app):
    sink = FakeSink()
    app.state.registry.register("viewer", sink)
    res = await client.post("/notify", content=b"{not json", headers={"content-type": "application/json"})
    assert res.status_code == 400
    assert "error" in res.json()
    assert sink.frames == []

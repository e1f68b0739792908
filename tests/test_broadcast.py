import pytest

from notify_relay.broadcast import Broadcaster
from notify_relay.registry import ClientRegistry
from notify_relay.schemas import Origin, build_notification
from notify_relay.sink import QueueSink
from tests.fakes import FakeSink

pytestmark = pytest.mark.anyio


def _envelope(body="hello", **kw):
    return build_notification(body, origin=Origin.direct, **kw)


async def test_broadcast_reaches_every_client():
    reg = ClientRegistry()
    sinks = [FakeSink() for _ in range(3)]
    for i, s in enumerate(sinks):
        reg.register(f"c{i}", s)
    env = _envelope()
    assert await Broadcaster(reg).broadcast(env) == 3
    for s in sinks:
        assert [e["id"] for e in s.events()] == [env.id]


async def test_failing_sink_is_isolated_and_pruned():
    reg = ClientRegistry()
    good = [FakeSink() for _ in range(3)]
    bad = FakeSink(fail=True)
    reg.register("g0", good[0])
    reg.register("bad", bad)
    reg.register("g1", good[1])
    reg.register("g2", good[2])

    sent = await Broadcaster(reg).broadcast(_envelope())

    assert sent == 3
    assert "bad" not in reg
    assert bad.closed is True
    assert all(len(s.frames) == 1 for s in good)


async def test_failed_sink_gets_no_retry_on_next_broadcast():
    reg = ClientRegistry()
    bad = FakeSink(fail=True)
    reg.register("bad", bad)
    engine = Broadcaster(reg)
    assert await engine.broadcast(_envelope()) == 0
    bad.fail = False
    assert await engine.broadcast(_envelope()) == 0
    assert bad.frames == []


async def test_no_clients_delivers_nothing():
    assert await Broadcaster(ClientRegistry()).broadcast(_envelope()) == 0


async def test_envelope_is_not_modified():
    reg = ClientRegistry()
    reg.register("a", FakeSink())
    env = _envelope(title="T")
    before = env.model_dump()
    await Broadcaster(reg).broadcast(env)
    assert env.model_dump() == before


async def test_register_broadcast_unregister_scenario():
    reg = ClientRegistry()
    a, b = FakeSink(), FakeSink()
    reg.register("A", a)
    reg.register("B", b)
    engine = Broadcaster(reg)

    e = _envelope("first")
    await engine.broadcast(e)
    assert [x["id"] for x in a.events()] == [e.id]
    assert [x["id"] for x in b.events()] == [e.id]

    reg.unregister("A")
    f = _envelope("second")
    await engine.broadcast(f)
    assert [x["id"] for x in a.events()] == [e.id]
    assert [x["id"] for x in b.events()] == [e.id, f.id]
    assert reg.ids() == ["B"]


async def test_overflowing_queue_sink_is_dropped():
    reg = ClientRegistry()
    slow = QueueSink(maxsize=2)
    fast = FakeSink()
    reg.register("slow", slow)
    reg.register("fast", fast)
    engine = Broadcaster(reg)

    counts = [await engine.broadcast(_envelope(str(i))) for i in range(3)]

    assert counts == [2, 2, 1]
    assert "slow" not in reg
    assert slow.closed
    assert len(fast.frames) == 3

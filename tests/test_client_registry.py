"""
Client registry tests
"""

import pytest
from websockets.exceptions import ConnectionClosedOK
from websockets.frames import Close

from conftest import FakeObserver
from warg.server.models import Notification, NotificationKind


def _closed():
    return ConnectionClosedOK(Close(1000, "bye"), Close(1000, "bye"), True)


@pytest.mark.asyncio
async def test_register_sends_status_snapshot(registry):
    observer = FakeObserver()

    await registry.register(observer)

    assert observer in registry
    assert registry.count == 1
    assert observer.sent == [{"type": "status", "data": {"initialized": False, "connectedClients": 1}}]


@pytest.mark.asyncio
async def test_snapshot_reflects_ready_session(registry, session_manager):
    await session_manager.initialize()
    observer = FakeObserver()

    await registry.register(observer)

    assert observer.sent[0]["data"]["initialized"] is True


@pytest.mark.asyncio
async def test_unregister_is_idempotent(registry):
    observer = FakeObserver()
    await registry.register(observer)

    registry.unregister(observer)
    registry.unregister(observer)
    registry.unregister(FakeObserver("never-registered"))

    assert registry.count == 0
    assert observer not in registry


@pytest.mark.asyncio
async def test_broadcast_excludes_origin(registry):
    a, b, c = FakeObserver("a"), FakeObserver("b"), FakeObserver("c")
    for observer in (a, b, c):
        await registry.register(observer)

    delivered = await registry.broadcast(Notification(NotificationKind.SESSION_STARTED), exclude=a)

    assert delivered == 2
    assert a.types() == ["status"]
    assert b.types() == ["status", "browser_started"]
    assert c.types() == ["status", "browser_started"]


@pytest.mark.asyncio
async def test_broadcast_with_no_observers(registry):
    assert await registry.broadcast({"type": "browser_stopped"}) == 0


@pytest.mark.asyncio
async def test_failed_send_does_not_block_others_or_unregister(registry):
    closed = FakeObserver("closed")
    broken = FakeObserver("broken")
    healthy = FakeObserver("healthy")
    for observer in (closed, broken, healthy):
        await registry.register(observer)
    closed.fail_with = _closed()
    broken.fail_with = RuntimeError("socket exploded")

    delivered = await registry.broadcast({"type": "browser_stopped"})

    assert delivered == 1
    assert healthy.types()[-1] == "browser_stopped"
    assert registry.count == 3


@pytest.mark.asyncio
async def test_unicast_reports_delivery(registry):
    observer = FakeObserver()
    assert await registry.unicast(observer, {"type": "status"}) is True

    observer.fail_with = _closed()
    assert await registry.unicast(observer, {"type": "status"}) is False

"""ConnectionManager tests: one topic, every live connection, dead ones pruned."""

import pytest
from starlette.websockets import WebSocketState

from conftest import FakeWebSocket
from pubrelay.errors import ForwardingFailure
from pubrelay.realtime.fanout import ConnectionManager

TOPIC = "/topic/messages"


@pytest.mark.asyncio
async def test_broadcast_reaches_every_client():
    manager = ConnectionManager(TOPIC)
    clients = [FakeWebSocket() for _ in range(3)]
    for ws in clients:
        await manager.connect(ws)

    recipients = await manager.broadcast(TOPIC, "hello")

    assert recipients == 3
    assert all(ws.accepted for ws in clients)
    assert all(ws.sent == ["hello"] for ws in clients)


@pytest.mark.asyncio
async def test_broadcast_with_no_clients_is_noop():
    manager = ConnectionManager(TOPIC)
    assert await manager.broadcast(TOPIC, "nobody home") == 0


@pytest.mark.asyncio
async def test_disconnected_client_stops_receiving():
    manager = ConnectionManager(TOPIC)
    stays, leaves = FakeWebSocket(), FakeWebSocket()
    await manager.connect(stays)
    await manager.connect(leaves)

    manager.disconnect(leaves)
    manager.disconnect(leaves)  # second call is harmless
    await manager.broadcast(TOPIC, "after leave")

    assert stays.sent == ["after leave"]
    assert leaves.sent == []
    assert manager.connection_count == 1


@pytest.mark.asyncio
async def test_failing_client_is_dropped_others_still_receive():
    manager = ConnectionManager(TOPIC)
    good, bad = FakeWebSocket(), FakeWebSocket(fail_send=True)
    await manager.connect(good)
    await manager.connect(bad)

    recipients = await manager.broadcast(TOPIC, "one")
    assert recipients == 1
    assert manager.connection_count == 1
    assert bad.close_code == 1011

    await manager.broadcast(TOPIC, "two")
    assert good.sent == ["one", "two"]


@pytest.mark.asyncio
async def test_slow_client_times_out_and_is_dropped():
    manager = ConnectionManager(TOPIC, send_timeout=0.01)
    fast, slow = FakeWebSocket(), FakeWebSocket(send_delay=1.0)
    await manager.connect(fast)
    await manager.connect(slow)

    recipients = await manager.broadcast(TOPIC, "hurry")

    assert recipients == 1
    assert fast.sent == ["hurry"]
    assert manager.connection_count == 1
    assert slow.close_code == 1011
    assert slow.client_state == WebSocketState.DISCONNECTED

    # Dropped clients are told so; a late recovery does not rejoin them.
    slow.send_delay = 0.0
    await manager.broadcast(TOPIC, "later")
    assert slow.sent == []
    assert fast.sent == ["hurry", "later"]


@pytest.mark.asyncio
async def test_unknown_topic_is_a_forwarding_failure():
    manager = ConnectionManager(TOPIC)
    await manager.connect(FakeWebSocket())

    with pytest.raises(ForwardingFailure):
        await manager.broadcast("/topic/elsewhere", "lost")


@pytest.mark.asyncio
async def test_close_disconnects_clients_and_rejects_broadcasts():
    manager = ConnectionManager(TOPIC)
    ws = FakeWebSocket()
    await manager.connect(ws)

    await manager.close()

    assert ws.close_code == 1001
    assert manager.connection_count == 0
    with pytest.raises(ForwardingFailure):
        await manager.broadcast(TOPIC, "too late")

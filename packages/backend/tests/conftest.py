"""Test fixtures — in-process relay, no Redis server required.

Learn: Every test gets its own MemoryTransport and its own channel name
(test:<uuid>), so no message published in one test can ever reach a
subscriber from another. The fan-out side is either a RecordingSink (for
core relay tests) or the real ConnectionManager with fake WebSockets.
"""

import asyncio
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.websockets import WebSocketState

from pubrelay.config import RelayRoute, Settings
from pubrelay.errors import ForwardingFailure
from pubrelay.main import app
from pubrelay.realtime.fanout import FanoutSink
from pubrelay.realtime.publisher import MessagePublisher
from pubrelay.realtime.relay import close_relay, init_relay
from pubrelay.realtime.subscriber import MessageSubscriber
from pubrelay.realtime.transport import MemoryTransport

TOPIC = "/topic/messages"


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005):
    """Poll predicate() until it is truthy or fail the test."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(interval)

    try:
        await asyncio.wait_for(_poll(), timeout)
    except asyncio.TimeoutError:
        pytest.fail(f"condition not met within {timeout}s")


class RecordingSink(FanoutSink):
    """Records every broadcast. Can be told to fail the next N calls."""

    def __init__(self, topic: str = TOPIC):
        self.topic = topic
        self.broadcasts: list[tuple[str, str]] = []
        self.attempts = 0
        self.fail_next = 0
        self.fail_with: Exception = ForwardingFailure("sink rejected broadcast")

    @property
    def payloads(self) -> list[str]:
        return [payload for _, payload in self.broadcasts]

    async def broadcast(self, topic: str, payload: str) -> int:
        self.attempts += 1
        if self.fail_next:
            self.fail_next -= 1
            raise self.fail_with
        self.broadcasts.append((topic, payload))
        return 1

    async def wait_for(self, count: int, timeout: float = 2.0) -> None:
        await wait_until(lambda: len(self.broadcasts) >= count, timeout)


class FakeWebSocket:
    """Just enough of starlette's WebSocket for ConnectionManager."""

    def __init__(self, fail_send: bool = False, send_delay: float = 0.0):
        self.sent: list[str] = []
        self.accepted = False
        self.close_code = None
        self.client_state = WebSocketState.CONNECTING
        self.fail_send = fail_send
        self.send_delay = send_delay

    async def accept(self):
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED

    async def send_text(self, data: str):
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_send:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.close_code = code
        self.client_state = WebSocketState.DISCONNECTED


@pytest.fixture()
def route():
    """A channel name no other test uses."""
    return RelayRoute(channel=f"test:{uuid.uuid4().hex}", topic=TOPIC)


@pytest_asyncio.fixture()
async def transport():
    t = MemoryTransport()
    await t.connect()
    try:
        yield t
    finally:
        await t.close()


@pytest.fixture()
def sink(route):
    return RecordingSink(route.topic)


@pytest.fixture()
def publisher(transport, route):
    return MessagePublisher(transport, route.channel)


@pytest_asyncio.fixture()
async def subscriber(transport, sink, route):
    """Started subscriber with fast reconnects; stopped after the test."""
    sub = MessageSubscriber(
        transport,
        sink,
        route,
        reconnect_delay=0.01,
        reconnect_max_delay=0.05,
    )
    await sub.start()
    try:
        yield sub
    finally:
        await sub.stop()


@pytest.fixture()
def relay_settings():
    return Settings(
        transport="memory",
        channel=f"test:{uuid.uuid4().hex}",
        reconnect_delay=0.01,
        reconnect_max_delay=0.05,
    )


@pytest_asyncio.fixture()
async def client(relay_settings):
    """HTTP client against the app with an in-memory relay.

    Learn: ASGITransport does not run the lifespan, so the relay is
    initialized here exactly the way the lifespan would do it.
    """
    await init_relay(relay_settings, transport=MemoryTransport())

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        await close_relay()

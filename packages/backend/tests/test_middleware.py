"""Tests for request ID middleware: header handling, log context binding.

Learn: The contextvars bound by the middleware are visible to the route
handler, so a throwaway app with a route that returns them shows exactly
what every log line written during the request will carry.
"""

import pytest
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from pubrelay.config import RelayRoute
from pubrelay.middleware.request_id import RequestIdMiddleware, resolve_request_id


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert "X-Request-ID" in r1.headers
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await client.post(
        "/api/v1/publish",
        data={"message": "traced"},
        headers={"X-Request-ID": custom_id},
    )
    assert r.headers["X-Request-ID"] == custom_id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad_id",
    ["x" * 129, "has space", "semi;colon", "a/b"],
)
async def test_unusable_request_id_is_replaced(client, bad_id):
    r = await client.get("/api/v1/health", headers={"X-Request-ID": bad_id})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] != bad_id
    assert len(r.headers["X-Request-ID"]) == 36  # uuid4


def test_resolve_request_id_keeps_trace_style_ids():
    assert resolve_request_id("00-4bf92f35.b7ad:6b71-01") == "00-4bf92f35.b7ad:6b71-01"
    assert resolve_request_id("a" * 128) == "a" * 128
    assert resolve_request_id(None) != resolve_request_id(None)
    assert resolve_request_id("") != ""


def _context_app(route=None) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware, route=route)

    @app.get("/context")
    async def context():
        return structlog.contextvars.get_contextvars()

    return app


@pytest.mark.asyncio
async def test_log_context_carries_request_and_channel():
    route = RelayRoute(channel="messageQueue", topic="/topic/messages")
    transport = ASGITransport(app=_context_app(route))

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/context", headers={"X-Request-ID": "req-1"})

    assert r.json() == {
        "request_id": "req-1",
        "method": "GET",
        "path": "/context",
        "channel": "messageQueue",
    }


@pytest.mark.asyncio
async def test_log_context_is_reset_between_requests():
    transport = ASGITransport(app=_context_app())

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        first = (await ac.get("/context", headers={"X-Request-ID": "one"})).json()
        second = (await ac.get("/context")).json()

    assert first["request_id"] == "one"
    assert second["request_id"] != "one"
    assert "channel" not in second

"""pubrelay CLI — publish messages and inspect a running relay.

Usage:
    pubrelay publish "hello"        # POST a message to /api/v1/publish
    pubrelay health                 # Transport + subscriber status
    pubrelay stats                  # Relay counters and connected clients
    pubrelay serve --port 8000      # Run the API + relay under uvicorn
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys

import click
import httpx

from pubrelay import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("PUBRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay API."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running (e.g. the
    CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _error_detail(r: httpx.Response) -> str:
    """Pull FastAPI's `detail` out of an error response, whatever its shape."""
    try:
        body = r.json()
    except ValueError:
        return r.text or r.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        detail = body["detail"]
        return detail if isinstance(detail, str) else json.dumps(detail)
    return r.reason_phrase


def _check(r: httpx.Response) -> None:
    if r.is_error:
        _fail(f"HTTP {r.status_code}: {_error_detail(r)}")


async def _get_json(path: str) -> dict:
    async with _client() as c:
        try:
            r = await c.get(path)
        except httpx.TransportError as e:
            _fail(f"relay API not reachable at {_api_url()} ({e})")
        _check(r)
        return r.json()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="pubrelay")
def main():
    """pubrelay — relay text messages to every connected WebSocket client."""


@main.command()
@click.argument("message")
def publish(message: str):
    """Publish MESSAGE on the relay channel."""
    _run(_publish_impl(message))


async def _publish_impl(message: str):
    async with _client() as c:
        try:
            r = await c.post("/api/v1/publish", data={"message": message})
        except httpx.TransportError as e:
            _fail(f"relay API not reachable at {_api_url()} ({e})")

        _check(r)
        body = r.json()
        click.secho(f"Published to {body['channel']}: {body['message']!r}", fg="green")


@main.command()
def health():
    """Show transport and subscriber health."""
    data = _run(_get_json("/api/v1/health"))
    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(f"Status: {data.get('status')}", fg=color, bold=True)
    click.echo(_pretty_json(data))


@main.command()
def stats():
    """Show relay counters."""
    click.echo(_pretty_json(_run(_get_json("/api/v1/stats"))))


@main.command()
@click.option("--host", default=None, help="Bind address (default: PUBRELAY_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: PUBRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the relay API under uvicorn."""
    import uvicorn

    from pubrelay.config import settings

    uvicorn.run(
        "pubrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()

"""FastAPI application factory.

Learn: App factory pattern: create_app() returns a configured FastAPI
instance. Lifespan owns the relay: the subscriber registers at startup and
deregisters at shutdown, on every exit path.

Unlike the Redis-optional setup of a typical API, startup fails hard if
the transport is unreachable: a relay that cannot subscribe would accept
messages and deliver none of them.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pubrelay import __version__
from pubrelay.api import api_router
from pubrelay.config import settings
from pubrelay.logging_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    configure_logging()
    logger.info(
        "pubrelay.starting",
        version=__version__,
        environment=settings.environment,
        transport=settings.transport,
        channel=settings.channel,
        topic=settings.topic,
    )

    from pubrelay.realtime.relay import close_relay, init_relay

    try:
        await init_relay(settings)
    except Exception as e:
        logger.error("pubrelay.relay_unavailable", error=str(e), url=settings.redis_url)
        raise

    try:
        yield
    finally:
        logger.info("pubrelay.shutdown")
        await close_relay()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="pubrelay",
        description="Redis pub/sub message relay with WebSocket fan-out",
        version=__version__,
        lifespan=lifespan,
    )

    from pubrelay.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware, route=settings.route())
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from pubrelay.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: pubrelay.main:app)
app = create_app()

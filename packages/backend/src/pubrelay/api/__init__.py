"""API route aggregation.

All routers registered here get mounted in main.py. The WebSocket route
lives in pubrelay.realtime.websocket and is mounted separately.
"""

from fastapi import APIRouter

from pubrelay.api.health import router as health_router
from pubrelay.api.publish import router as publish_router
from pubrelay.api.stats import router as stats_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(publish_router, tags=["publish"])
api_router.include_router(stats_router, tags=["stats"])

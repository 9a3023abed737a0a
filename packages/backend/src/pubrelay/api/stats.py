"""Relay statistics endpoint."""

from fastapi import APIRouter

from pubrelay.realtime.relay import get_connection_manager, get_subscriber
from pubrelay.schemas.message import RelayStats

router = APIRouter()


@router.get("/stats", response_model=RelayStats)
async def relay_stats():
    return RelayStats(
        **get_subscriber().get_stats(),
        clients=get_connection_manager().connection_count,
    )

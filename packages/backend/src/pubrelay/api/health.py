"""Health check endpoint.

Learn: Reports whether the transport answers a ping and whether the
subscriber currently holds its registration. During a reconnect the
subscriber is still "registered" but not "connected", so the service
shows as degraded until the subscription is back.
"""

from fastapi import APIRouter

from pubrelay import __version__
from pubrelay.realtime.relay import (
    get_connection_manager,
    get_subscriber,
    get_transport,
)
from pubrelay.realtime.subscriber import SubscriberState

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and relay connectivity."""
    checks = {"server": "ok", "version": __version__}

    transport = get_transport()
    checks["transport"] = "ok" if await transport.ping() else "error: unreachable"

    subscriber = get_subscriber()
    if subscriber.state == SubscriberState.REGISTERED and subscriber.connected:
        checks["subscriber"] = "ok"
    else:
        checks["subscriber"] = f"error: {subscriber.state.value}, reconnecting"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {
        "status": status,
        "transport_type": transport.name,
        "clients": get_connection_manager().connection_count,
        **checks,
    }

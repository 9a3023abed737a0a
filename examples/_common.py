"""
Shared helpers for pubrelay examples.
"""

import sys

import httpx

BASE = "http://localhost:8000/api/v1"


def check_backend() -> dict:
    """Verify the relay is reachable and its subscriber is registered."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Relay not reachable at {BASE}")
        print("Start it with:  pubrelay serve --port 8000")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Relay health:")
    print(f"  Transport:  {'✓' if health['transport'] == 'ok' else '✗'} ({health['transport_type']})")
    print(f"  Subscriber: {'✓' if health['subscriber'] == 'ok' else '✗'}")
    print(f"  Clients:    {health['clients']}")

    if health["status"] != "healthy":
        print("\nWARNING: relay is degraded, messages may not reach clients")
    return health

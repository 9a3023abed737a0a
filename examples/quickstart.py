#!/usr/bin/env python3
"""
pubrelay quickstart — publish a few messages and watch the counters move.

Open a WebSocket to ws://localhost:8000/ws/messages first (browser devtools:
`new WebSocket("ws://localhost:8000/ws/messages").onmessage = e => console.log(e.data)`)
to see the messages arrive.

Run with: python examples/quickstart.py

Requires: pip install httpx
Relay must be running: http://localhost:8000
"""

import sys
import time

import httpx

from _common import BASE, check_backend


def main():
    check_backend()
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Publish via the form field, like the HTML page does ─────
    print("\n1. Publishing messages...")
    for text in ("hello", "", "a", "b"):
        resp = client.post("/publish", data={"message": text})
        if resp.status_code == 503:
            print(f"   Not sent: {resp.json()['detail']}")
            sys.exit(1)
        assert resp.status_code == 202, f"Failed: {resp.text}"
        print(f"   Accepted: {text!r}")

    # ── Publish via JSON ───────────────────────────────────────
    print("\n2. Publishing JSON...")
    resp = client.post("/publish", json={"message": "from json"})
    assert resp.status_code == 202, f"Failed: {resp.text}"
    print(f"   Accepted on channel {resp.json()['channel']}")

    # ── Counters ───────────────────────────────────────────────
    time.sleep(0.2)
    stats = client.get("/stats").json()
    print("\n3. Relay stats:")
    for key in ("received", "forwarded", "forward_failures", "malformed", "clients"):
        print(f"   {key:17s} {stats[key]}")


if __name__ == "__main__":
    main()

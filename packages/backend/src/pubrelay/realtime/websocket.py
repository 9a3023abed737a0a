"""WebSocket endpoint — real-time message delivery to browser clients.

Learn: Each client connects to /ws/messages and is joined to the relay
topic. The relay pushes every message as a text frame. The handler only
has to keep reading so it notices the disconnect; the single inbound
command is {"type": "ping"} → {"type": "pong"}.

This is a long-lived connection, one per browser tab.
"""

import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from pubrelay.realtime.relay import get_connection_manager

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws/messages")
async def messages_websocket(websocket: WebSocket):
    """Join the relay topic until the client goes away."""
    manager = get_connection_manager()
    await manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)

"""Fan-out sink — the registry of live WebSocket connections.

Learn: Every connected client implicitly joins the one topic. The relay
only ever calls broadcast(); join/leave is driven by the WebSocket
endpoint. A client whose send fails (closed tab, dead socket, slow
consumer past the timeout) is dropped from the registry without
affecting delivery to the others, and its socket is closed with 1011 so
the client knows to reconnect instead of waiting on a dead registration.
"""

import asyncio
from abc import ABC, abstractmethod

import structlog
from starlette.websockets import WebSocket, WebSocketState

from pubrelay.errors import ForwardingFailure

logger = structlog.get_logger()


class FanoutSink(ABC):
    """Broadcast destination for relayed messages."""

    topic: str

    @abstractmethod
    async def broadcast(self, topic: str, payload: str) -> int:
        """Send payload to every connection on topic. Returns recipients."""


class ConnectionManager(FanoutSink):
    def __init__(self, topic: str, send_timeout: float = 5.0):
        self.topic = topic
        self.send_timeout = send_timeout
        self._connections: set[WebSocket] = set()
        self._closed = False

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept the handshake and join the topic."""
        await websocket.accept()
        self._connections.add(websocket)
        logger.info(
            "relay.client_connected",
            topic=self.topic,
            connections=len(self._connections),
        )

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            self._connections.discard(websocket)
            logger.info(
                "relay.client_disconnected",
                topic=self.topic,
                connections=len(self._connections),
            )

    async def broadcast(self, topic: str, payload: str) -> int:
        if self._closed:
            raise ForwardingFailure("fan-out sink is closed")
        if topic != self.topic:
            raise ForwardingFailure(
                f"no such topic {topic!r} (sink serves {self.topic!r})"
            )

        connections = list(self._connections)
        if not connections:
            return 0

        results = await asyncio.gather(
            *(self._send(ws, payload) for ws in connections)
        )
        return sum(results)

    async def _send(self, websocket: WebSocket, payload: str) -> bool:
        try:
            await asyncio.wait_for(
                websocket.send_text(payload), timeout=self.send_timeout
            )
            return True
        except Exception as e:
            logger.warning("relay.client_send_failed", error=repr(e))
            self.disconnect(websocket)
            await self._close_quietly(websocket, code=1011)
            return False

    async def _close_quietly(self, websocket: WebSocket, code: int) -> None:
        """Close a connection that has left the topic so the client notices."""
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            await asyncio.wait_for(websocket.close(code=code), timeout=self.send_timeout)
        except Exception as e:
            logger.debug("relay.client_close_failed", code=code, error=repr(e))

    async def close(self) -> None:
        """Stop accepting broadcasts and close every connection (1001 going away)."""
        self._closed = True
        connections = list(self._connections)
        self._connections.clear()
        for ws in connections:
            await self._close_quietly(ws, code=1001)

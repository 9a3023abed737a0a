"""Pydantic schemas for the publish API.

Learn: The message is opaque text. No min_length, the empty string is a
valid message and is relayed unchanged. No trimming either.
"""

from typing import Optional

from pydantic import BaseModel, Field


class PublishRequest(BaseModel):
    message: str = Field(..., description="Text to relay to every connected client")


class PublishResponse(BaseModel):
    status: str = "accepted"
    message: str
    channel: str


class RelayStats(BaseModel):
    """Subscriber counters plus the current number of WebSocket clients."""
    state: str
    connected: bool
    channel: str
    topic: str
    received: int
    forwarded: int
    forward_failures: int
    malformed: int
    dropped: int
    reconnects: int
    pending: int
    started_at: Optional[str] = None
    clients: int

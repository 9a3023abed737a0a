"""Channel transport interface + in-process implementation.

Learn: The relay core never talks to Redis directly. It depends on two
operations: publish a text payload to a named channel, and register on a
named channel to receive (payload bytes, channel) pairs. Anything that
provides those can carry the relay:

- RedisTransport (pubsub.py): production, cross-process.
- MemoryTransport (below): single process, same fire-and-forget
  semantics. Used for local runs without Redis and throughout the tests.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import structlog

from pubrelay.errors import TransportUnavailable

logger = structlog.get_logger()


@dataclass(frozen=True)
class ChannelMessage:
    """One delivery from the transport, exactly as it arrived."""

    data: bytes
    channel: str


class ChannelSubscription(ABC):
    """A live registration on one channel.

    Iterating yields every message delivered after registration. Iteration
    raises TransportUnavailable if the connection drops, and stops when the
    subscription is closed.
    """

    channel: str

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[ChannelMessage]:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Deregister from the channel. Safe to call more than once."""


class ChannelTransport(ABC):
    """Publish/subscribe broadcast medium addressed by channel name."""

    name: str = "transport"

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection. Raises TransportUnavailable."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and every open subscription."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the transport is reachable right now."""

    @abstractmethod
    async def publish(self, channel: str, payload: str) -> int:
        """Send payload on channel. Returns the number of receivers."""

    @abstractmethod
    async def subscribe(self, channel: str) -> ChannelSubscription:
        """Register on channel. Raises TransportUnavailable."""


# ─── In-process implementation ──────────────────────────

_CLOSED = object()


class MemorySubscription(ChannelSubscription):
    def __init__(self, transport: "MemoryTransport", channel: str):
        self.channel = channel
        self._transport = transport
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, item) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    async def __aiter__(self) -> AsyncIterator[ChannelMessage]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        if self._closed:
            return
        self._transport._discard(self)
        self._queue.put_nowait(_CLOSED)
        self._closed = True


class MemoryTransport(ChannelTransport):
    """In-process pub/sub with Redis semantics.

    Messages are encoded to bytes on publish, so subscribers see the same
    payload type they would get from Redis. Nothing is stored: publishing
    to a channel with no subscribers is a no-op that returns 0.
    """

    name = "memory"

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding
        self._subscriptions: dict[str, set[MemorySubscription]] = {}
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                await sub.close()
        self._subscriptions.clear()
        self._connected = False

    async def ping(self) -> bool:
        return self._connected

    async def publish(self, channel: str, payload: str) -> int:
        self._ensure_connected()
        message = ChannelMessage(data=payload.encode(self._encoding), channel=channel)
        subs = list(self._subscriptions.get(channel, ()))
        for sub in subs:
            sub._deliver(message)
        return len(subs)

    async def subscribe(self, channel: str) -> MemorySubscription:
        self._ensure_connected()
        sub = MemorySubscription(self, channel)
        self._subscriptions.setdefault(channel, set()).add(sub)
        return sub

    def drop_connections(self, reason: str = "connection dropped") -> None:
        """Sever every subscription and go offline, like a Redis restart.

        Listeners see TransportUnavailable; publish and subscribe fail until
        connect() is called again.
        """
        self._connected = False
        for subs in self._subscriptions.values():
            for sub in subs:
                sub._deliver(TransportUnavailable(reason))
                sub._closed = True
        self._subscriptions.clear()
        logger.warning("relay.memory_transport_dropped", reason=reason)

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscriptions.get(channel, ()))

    def _discard(self, sub: MemorySubscription) -> None:
        subs: Optional[set] = self._subscriptions.get(sub.channel)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subscriptions[sub.channel]

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise TransportUnavailable("memory transport is not connected")

"""Redis pub/sub transport.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost, and a subscriber that is disconnected misses whatever was
published in the meantime. That matches the relay's contract exactly:
at-most-once per subscriber connection, no persistence.

Two clients are used:
- a command client (with socket_timeout) for PUBLISH and PING, so a
  publish can never hang the caller;
- a subscriber client without a read timeout, because a pub/sub
  connection legitimately sits idle between messages.
"""

from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from pubrelay.config import Settings
from pubrelay.errors import TransportUnavailable
from pubrelay.realtime.transport import (
    ChannelMessage,
    ChannelSubscription,
    ChannelTransport,
    MemoryTransport,
)

logger = structlog.get_logger()

_REDIS_DOWN = (RedisConnectionError, RedisTimeoutError, OSError)


def _text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class RedisSubscription(ChannelSubscription):
    """One SUBSCRIBE on a dedicated pub/sub connection."""

    def __init__(self, pubsub: aioredis.client.PubSub, channel: str):
        self.channel = channel
        self._pubsub = pubsub
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[ChannelMessage]:
        try:
            async for message in self._pubsub.listen():
                if message["type"] != "message":
                    continue
                yield ChannelMessage(
                    data=message["data"],
                    channel=_text(message["channel"]),
                )
        except _REDIS_DOWN as e:
            if self._closed:
                return
            raise TransportUnavailable(f"redis subscription lost: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._pubsub.unsubscribe(self.channel)
        except _REDIS_DOWN as e:
            # Connection already gone; the server has dropped the subscription.
            logger.debug("relay.unsubscribe_skipped", channel=self.channel, error=str(e))
        finally:
            await self._pubsub.aclose()


class RedisTransport(ChannelTransport):
    """Channel transport backed by Redis PUBLISH/SUBSCRIBE."""

    name = "redis"

    def __init__(
        self,
        url: str,
        socket_timeout: Optional[float] = 5.0,
        encoding: str = "utf-8",
    ):
        self.url = url
        self.socket_timeout = socket_timeout
        self.encoding = encoding
        self._redis: Optional[aioredis.Redis] = None
        self._subscriber_redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        """Create both clients and verify the server answers."""
        self._redis = aioredis.from_url(
            self.url,
            encoding=self.encoding,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )
        self._subscriber_redis = aioredis.from_url(
            self.url,
            encoding=self.encoding,
            socket_connect_timeout=self.socket_timeout,
            socket_keepalive=True,
            health_check_interval=30,
        )
        try:
            await self._redis.ping()
        except _REDIS_DOWN as e:
            await self.close()
            raise TransportUnavailable(f"redis unreachable at {self.url}: {e}") from e
        logger.info("relay.redis_connected", url=self.url)

    async def close(self) -> None:
        for client in (self._redis, self._subscriber_redis):
            if client is not None:
                await client.aclose()
        self._redis = None
        self._subscriber_redis = None

    async def ping(self) -> bool:
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except _REDIS_DOWN:
            return False

    async def publish(self, channel: str, payload: str) -> int:
        if self._redis is None:
            raise TransportUnavailable("redis transport is not connected")
        try:
            return await self._redis.publish(channel, payload)
        except _REDIS_DOWN as e:
            raise TransportUnavailable(f"publish to {channel!r} failed: {e}") from e

    async def subscribe(self, channel: str) -> RedisSubscription:
        if self._subscriber_redis is None:
            raise TransportUnavailable("redis transport is not connected")
        pubsub = self._subscriber_redis.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(channel)
        except _REDIS_DOWN as e:
            await pubsub.aclose()
            raise TransportUnavailable(f"subscribe to {channel!r} failed: {e}") from e
        return RedisSubscription(pubsub, channel)


def build_transport(config: Settings) -> ChannelTransport:
    """Pick the transport named by PUBRELAY_TRANSPORT."""
    if config.transport == "memory":
        return MemoryTransport(encoding=config.message_encoding)
    return RedisTransport(
        config.redis_url,
        socket_timeout=config.redis_socket_timeout,
        encoding=config.message_encoding,
    )

"""Message subscriber — standing registration on the channel, forwards to the sink.

Learn: The subscriber runs two concurrent tasks:
1. Listener: iterates the transport subscription and calls on_message()
   for every delivery. on_message() only decodes and enqueues, so the
   transport's delivery loop is never held up by a slow sink.
2. Forward worker: drains the queue and calls sink.broadcast() once per
   message. A single worker keeps the sink in delivery order.

Failure rules:
- Registration failure in start() raises TransportUnavailable (fatal).
- Losing the transport later → re-register with exponential backoff.
- A broadcast that fails is logged and counted; the next message is
  forwarded as usual.
- Bytes that are not valid text are dropped and counted.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog

from pubrelay.config import RelayRoute
from pubrelay.errors import ForwardingFailure, MalformedPayload, TransportUnavailable
from pubrelay.realtime.fanout import FanoutSink
from pubrelay.realtime.transport import ChannelSubscription, ChannelTransport

logger = structlog.get_logger()


class SubscriberState(str, Enum):
    REGISTERED = "registered"
    UNREGISTERED = "unregistered"


@dataclass
class SubscriberStats:
    """Runtime counters for monitoring."""
    received: int = 0
    forwarded: int = 0
    forward_failures: int = 0
    malformed: int = 0
    dropped: int = 0  # forward queue full
    reconnects: int = 0
    started_at: Optional[datetime] = None


class MessageSubscriber:
    """Relays every message on route.channel to sink on route.topic."""

    def __init__(
        self,
        transport: ChannelTransport,
        sink: FanoutSink,
        route: RelayRoute,
        *,
        encoding: str = "utf-8",
        queue_size: int = 1000,
        reconnect_delay: float = 0.5,
        reconnect_max_delay: float = 30.0,
        drain_timeout: float = 2.0,
    ):
        self.channel = route.channel
        self.topic = route.topic
        self.encoding = encoding
        self.reconnect_delay = reconnect_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.drain_timeout = drain_timeout

        self.state = SubscriberState.UNREGISTERED
        self.connected = False
        self.stats = SubscriberStats()

        self._transport = transport
        self._sink = sink
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._subscription: Optional[ChannelSubscription] = None
        self._listener_task: Optional[asyncio.Task] = None
        self._worker_task: Optional[asyncio.Task] = None
        self._running = False

    # ─── Lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        """Register on the channel and start relaying.

        Raises TransportUnavailable if the first registration fails.
        """
        if self._running:
            return

        self._subscription = await self._transport.subscribe(self.channel)

        self._running = True
        self.connected = True
        self.state = SubscriberState.REGISTERED
        self.stats.started_at = datetime.now(timezone.utc)

        self._worker_task = asyncio.create_task(
            self._forward_loop(), name="relay-forward"
        )
        self._listener_task = asyncio.create_task(
            self._listen_loop(), name="relay-listen"
        )
        logger.info(
            "relay.subscriber_started",
            channel=self.channel,
            topic=self.topic,
            transport=self._transport.name,
        )

    async def stop(self) -> None:
        """Drain pending forwards, cancel both tasks and deregister."""
        if not self._running:
            return
        self._running = False

        if self._listener_task:
            self._listener_task.cancel()

        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("relay.drain_timeout", pending=self._queue.qsize())

        for task in (self._listener_task, self._worker_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._listener_task = None
        self._worker_task = None

        await self._close_subscription()
        self.connected = False
        self.state = SubscriberState.UNREGISTERED
        logger.info(
            "relay.subscriber_stopped",
            channel=self.channel,
            forwarded=self.stats.forwarded,
            forward_failures=self.stats.forward_failures,
        )

    async def __aenter__(self) -> "MessageSubscriber":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ─── Delivery callback ────────────────────────────────

    def on_message(self, payload: bytes, pattern: str) -> None:
        """Called once per delivered message. Never blocks."""
        self.stats.received += 1
        try:
            text = self._decode(payload)
        except MalformedPayload as e:
            self.stats.malformed += 1
            logger.warning("relay.malformed_payload", channel=pattern, error=str(e))
            return

        try:
            self._queue.put_nowait(text)
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning(
                "relay.forward_queue_full",
                channel=pattern,
                maxsize=self._queue.maxsize,
            )

    def _decode(self, payload: bytes) -> str:
        try:
            return bytes(payload).decode(self.encoding)
        except UnicodeDecodeError as e:
            raise MalformedPayload(bytes(payload), self.encoding) from e

    # ─── Listener ─────────────────────────────────────────

    async def _listen_loop(self) -> None:
        while self._running:
            try:
                async for message in self._subscription:
                    self.on_message(message.data, message.channel)
                if not self._running:
                    break
                logger.warning("relay.subscription_ended", channel=self.channel)
            except TransportUnavailable as e:
                logger.warning("relay.transport_lost", channel=self.channel, error=str(e))
            except Exception:
                logger.exception("relay.listener_error", channel=self.channel)

            self.connected = False
            await self._close_subscription()
            subscription = await self._reregister()
            if subscription is None:
                break
            self._subscription = subscription
            self.connected = True

    async def _reregister(self) -> Optional[ChannelSubscription]:
        """Retry SUBSCRIBE with exponential backoff until it works or we stop."""
        delay = self.reconnect_delay
        while self._running:
            await asyncio.sleep(delay)
            try:
                subscription = await self._transport.subscribe(self.channel)
            except TransportUnavailable as e:
                logger.warning(
                    "relay.reregister_failed",
                    channel=self.channel,
                    error=str(e),
                    retry_in=delay,
                )
                delay = min(delay * 2, self.reconnect_max_delay)
                continue

            self.stats.reconnects += 1
            logger.info(
                "relay.reregistered",
                channel=self.channel,
                reconnects=self.stats.reconnects,
            )
            return subscription
        return None

    async def _close_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            await subscription.close()
        except Exception as e:
            logger.debug("relay.subscription_close_failed", error=repr(e))

    # ─── Forward worker ───────────────────────────────────

    async def _forward_loop(self) -> None:
        while True:
            text = await self._queue.get()
            try:
                await self._forward(text)
            finally:
                self._queue.task_done()

    async def _forward(self, text: str) -> None:
        try:
            recipients = await self._sink.broadcast(self.topic, text)
        except ForwardingFailure as e:
            self.stats.forward_failures += 1
            logger.error("relay.forward_failed", topic=self.topic, error=str(e))
            return
        except Exception as e:
            self.stats.forward_failures += 1
            logger.exception("relay.forward_failed", topic=self.topic, error=repr(e))
            return

        self.stats.forwarded += 1
        logger.debug("relay.forwarded", topic=self.topic, recipients=recipients)

    async def drain(self) -> None:
        """Wait until every enqueued message has been forwarded."""
        await self._queue.join()

    # ─── Stats ────────────────────────────────────────────

    def get_stats(self) -> dict:
        """Return subscriber statistics for monitoring."""
        return {
            "state": self.state.value,
            "connected": self.connected,
            "channel": self.channel,
            "topic": self.topic,
            "received": self.stats.received,
            "forwarded": self.stats.forwarded,
            "forward_failures": self.stats.forward_failures,
            "malformed": self.stats.malformed,
            "dropped": self.stats.dropped,
            "reconnects": self.stats.reconnects,
            "pending": self._queue.qsize(),
            "started_at": (
                self.stats.started_at.isoformat()
                if self.stats.started_at
                else None
            ),
        }

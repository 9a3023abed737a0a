"""Process-wide relay wiring: transport, sink, publisher, subscriber.

Learn: Built once in the FastAPI lifespan and torn down at shutdown. The
publisher and subscriber share one RelayRoute taken from settings, so the
channel name exists in exactly one place.
"""

from typing import Optional

import structlog

from pubrelay.config import Settings, settings
from pubrelay.realtime.fanout import ConnectionManager
from pubrelay.realtime.publisher import MessagePublisher
from pubrelay.realtime.pubsub import build_transport
from pubrelay.realtime.subscriber import MessageSubscriber
from pubrelay.realtime.transport import ChannelTransport

logger = structlog.get_logger()

# Global relay components (initialized in lifespan)
_transport: Optional[ChannelTransport] = None
_manager: Optional[ConnectionManager] = None
_publisher: Optional[MessagePublisher] = None
_subscriber: Optional[MessageSubscriber] = None


async def init_relay(
    config: Settings = settings,
    transport: Optional[ChannelTransport] = None,
) -> None:
    """Connect the transport and register the subscriber.

    Raises TransportUnavailable if either step fails; the process must not
    come up without a working subscription.
    """
    global _transport, _manager, _publisher, _subscriber

    route = config.route()
    transport = transport or build_transport(config)
    await transport.connect()

    manager = ConnectionManager(route.topic)
    subscriber = MessageSubscriber(
        transport,
        manager,
        route,
        encoding=config.message_encoding,
        queue_size=config.forward_queue_size,
        reconnect_delay=config.reconnect_delay,
        reconnect_max_delay=config.reconnect_max_delay,
    )
    try:
        await subscriber.start()
    except Exception:
        await transport.close()
        raise

    _transport = transport
    _manager = manager
    _subscriber = subscriber
    _publisher = MessagePublisher(transport, route.channel)
    logger.info("relay.ready", channel=route.channel, topic=route.topic)


async def close_relay() -> None:
    """Deregister the subscriber, close client connections and the transport."""
    global _transport, _manager, _publisher, _subscriber

    subscriber, manager, transport = _subscriber, _manager, _transport
    _transport = None
    _manager = None
    _publisher = None
    _subscriber = None

    try:
        if subscriber:
            await subscriber.stop()
    finally:
        try:
            if manager:
                await manager.close()
        finally:
            if transport:
                await transport.close()


def _require(component):
    if component is None:
        raise RuntimeError("Relay not initialized. Call init_relay() first.")
    return component


def get_publisher() -> MessagePublisher:
    return _require(_publisher)


def get_subscriber() -> MessageSubscriber:
    return _require(_subscriber)


def get_connection_manager() -> ConnectionManager:
    return _require(_manager)


def get_transport() -> ChannelTransport:
    return _require(_transport)

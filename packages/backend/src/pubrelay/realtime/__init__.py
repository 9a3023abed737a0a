"""Relay core — Redis pub/sub in, WebSocket fan-out out.

Learn: Messages flow through two hops:
1. Publisher → channel transport PUBLISH
2. Subscriber ← transport SUBSCRIBE → ConnectionManager → WebSocket clients

The producer never knows who is listening, and clients never know who
produced. Only the shared channel/topic names tie the two ends together.
"""

from pubrelay.realtime.fanout import ConnectionManager, FanoutSink
from pubrelay.realtime.publisher import MessagePublisher
from pubrelay.realtime.pubsub import RedisTransport, build_transport
from pubrelay.realtime.subscriber import MessageSubscriber, SubscriberState
from pubrelay.realtime.transport import (
    ChannelMessage,
    ChannelSubscription,
    ChannelTransport,
    MemoryTransport,
)

__all__ = [
    "ChannelMessage",
    "ChannelSubscription",
    "ChannelTransport",
    "ConnectionManager",
    "FanoutSink",
    "MemoryTransport",
    "MessagePublisher",
    "MessageSubscriber",
    "RedisTransport",
    "SubscriberState",
    "build_transport",
]

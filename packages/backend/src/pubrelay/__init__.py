"""pubrelay — Redis pub/sub message relay with WebSocket fan-out.

Producers publish short text messages to a single Redis channel. A standing
subscriber receives them and rebroadcasts each one to every connected
WebSocket client on a single topic.
"""

__version__ = "0.1.0"

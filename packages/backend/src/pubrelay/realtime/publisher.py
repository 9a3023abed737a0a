"""Message publisher — hands a message to the channel transport.

Learn: publish() makes exactly one transmission attempt. No retry, no
buffering, no dedup. Either the transport accepted the message, or the
caller gets TransportUnavailable. A failed publish must never look like a
success to the HTTP layer.
"""

import structlog

from pubrelay.errors import TransportUnavailable
from pubrelay.realtime.transport import ChannelTransport

logger = structlog.get_logger()


class MessagePublisher:
    """Publishes text messages verbatim on one fixed channel.

    Holds no mutable state, so a single instance is shared by every
    concurrent request.
    """

    def __init__(self, transport: ChannelTransport, channel: str):
        self._transport = transport
        self.channel = channel

    async def publish(self, message: str) -> None:
        if not isinstance(message, str):
            raise TypeError(
                f"message must be str, got {type(message).__name__}"
            )

        try:
            receivers = await self._transport.publish(self.channel, message)
        except TransportUnavailable as e:
            logger.warning("relay.publish_failed", channel=self.channel, error=str(e))
            raise

        logger.info(
            "relay.published",
            channel=self.channel,
            size=len(message),
            receivers=receivers,
        )

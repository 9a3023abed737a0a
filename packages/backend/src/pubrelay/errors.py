"""Relay error hierarchy.

Learn: Three failure classes, each with its own propagation rule:
- TransportUnavailable: surfaced to the publisher's caller; fatal when the
  subscriber cannot register at startup; triggers a reconnect afterwards.
- ForwardingFailure: logged and counted, the subscriber keeps going.
- MalformedPayload: the message is dropped and reported.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class TransportUnavailable(RelayError):
    """The channel transport could not be reached."""


class ForwardingFailure(RelayError):
    """The fan-out sink rejected or failed to deliver a broadcast."""


class MalformedPayload(RelayError):
    """A delivered payload could not be decoded as text."""

    def __init__(self, payload: bytes, encoding: str):
        self.payload = payload
        self.encoding = encoding
        super().__init__(
            f"payload of {len(payload)} bytes is not valid {encoding}"
        )

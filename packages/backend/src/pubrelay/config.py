"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with PUBRELAY_ prefix.

Learn: The channel and topic names live here and nowhere else. Both the
publisher and the subscriber are built from the same RelayRoute, so they
cannot disagree on the channel (a mismatch would silently drop messages).
"""

from dataclasses import dataclass

from pydantic import model_validator
from pydantic_settings import BaseSettings

SUPPORTED_TRANSPORTS = ("redis", "memory")


@dataclass(frozen=True)
class RelayRoute:
    """The routing keys shared by the publisher and the subscriber."""

    channel: str
    topic: str


class Settings(BaseSettings):
    """All app configuration. Set via PUBRELAY_* env vars."""

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_socket_timeout: float = 5.0

    # Channel transport: "redis" in production, "memory" for a single process
    transport: str = "redis"

    # Routing keys (fixed for the lifetime of the process)
    channel: str = "messageQueue"
    topic: str = "/topic/messages"
    message_encoding: str = "utf-8"

    # Subscriber
    forward_queue_size: int = 1000
    reconnect_delay: float = 0.5  # seconds, doubles on each failed attempt
    reconnect_max_delay: float = 30.0

    # Server
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # or "json"

    model_config = {"env_prefix": "PUBRELAY_"}

    @model_validator(mode="after")
    def validate_relay_settings(self):
        """Reject configurations that would make the relay silently drop messages."""
        if not self.channel or not self.topic:
            raise ValueError("PUBRELAY_CHANNEL and PUBRELAY_TOPIC must not be empty")
        if self.transport not in SUPPORTED_TRANSPORTS:
            raise ValueError(
                f"PUBRELAY_TRANSPORT must be one of {', '.join(SUPPORTED_TRANSPORTS)}, "
                f"got {self.transport!r}"
            )
        if self.reconnect_max_delay < self.reconnect_delay:
            raise ValueError(
                "PUBRELAY_RECONNECT_MAX_DELAY must be >= PUBRELAY_RECONNECT_DELAY"
            )
        return self

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    def route(self) -> RelayRoute:
        """Build the single channel/topic pair used by both relay ends."""
        return RelayRoute(channel=self.channel, topic=self.topic)


# Singleton, import this everywhere
settings = Settings()

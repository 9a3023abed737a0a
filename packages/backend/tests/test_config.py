"""Settings tests: defaults, env overrides, validation."""

import pytest
from pydantic import ValidationError

from pubrelay.config import RelayRoute, Settings


def test_defaults_match_the_relay_contract():
    s = Settings()
    assert s.channel == "messageQueue"
    assert s.topic == "/topic/messages"
    assert s.message_encoding == "utf-8"
    assert s.redis_url == "redis://localhost:6379/0"


def test_route_is_built_from_one_place():
    s = Settings(channel="chat", topic="/topic/chat")
    assert s.route() == RelayRoute(channel="chat", topic="/topic/chat")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PUBRELAY_REDIS_HOST", "redis.internal")
    monkeypatch.setenv("PUBRELAY_REDIS_PORT", "6380")
    monkeypatch.setenv("PUBRELAY_CHANNEL", "alerts")
    monkeypatch.setenv("PUBRELAY_TRANSPORT", "memory")

    s = Settings()
    assert s.redis_url == "redis://redis.internal:6380/0"
    assert s.channel == "alerts"
    assert s.transport == "memory"


@pytest.mark.parametrize(
    "overrides",
    [
        {"channel": ""},
        {"topic": ""},
        {"transport": "kafka"},
        {"reconnect_delay": 5.0, "reconnect_max_delay": 1.0},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_only_relay_settings_are_exposed():
    assert set(Settings.model_fields) == {
        "redis_host", "redis_port", "redis_db", "redis_socket_timeout",
        "transport", "channel", "topic", "message_encoding",
        "forward_queue_size", "reconnect_delay", "reconnect_max_delay",
        "environment", "host", "port", "cors_origins",
        "log_level", "log_format",
    }

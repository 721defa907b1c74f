"""Unit tests for configuration and exception payloads."""

from chat_client.config.streaming_config import StreamingConfig
from chat_client.exceptions import UsageLimitExceededError


def test_defaults():
    settings = StreamingConfig()

    assert settings.RECOVERY_MAX_ATTEMPTS == 8
    assert settings.RECOVERY_POLL_INTERVAL == 0.65
    assert settings.STALL_THRESHOLD == 8.0
    assert settings.INDICATOR_EXPIRY_SECONDS == 5.0


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("RECOVERY_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("RECOVERY_POLL_INTERVAL", "0.1")
    monkeypatch.setenv("STALL_THRESHOLD", "20")

    settings = StreamingConfig.from_env()

    assert settings.RECOVERY_MAX_ATTEMPTS == 3
    assert settings.RECOVERY_POLL_INTERVAL == 0.1
    assert settings.STALL_THRESHOLD == 20.0


def test_usage_limit_notification():
    error = UsageLimitExceededError.from_payload(
        {"error": "usage_limit_exceeded", "currentSpending": 12.0, "limit": 10, "planType": "pro"}
    )

    assert error.to_notification() == {
        "type": "usage_limit_exceeded",
        "message": "usage_limit_exceeded",
        "currentSpending": 12.0,
        "limit": 10,
        "planType": "pro",
    }

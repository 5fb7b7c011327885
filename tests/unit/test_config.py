"""Tests for domain-specific configuration."""

from datetime import timedelta

import pytest
from pydantic import SecretStr, ValidationError

from app.core.config import Settings
from app.core.settings import (
    AppConfig,
    DatabaseConfig,
    LiveAgentConfig,
    LLMConfig,
    NotificationConfig,
    ServerConfig,
)


def _live_agent(**overrides: object) -> LiveAgentConfig:
    values: dict = {
        "auto_accept": False,
        "allow_guests": True,
        "inactivity_timeout_minutes": 30,
        "history_cap": 100,
        "max_wait_seconds": 20.0,
        "wait_interval_seconds": 0.5,
        "typing_ttl_seconds": 5,
        "session_rate_limit": "5/minute",
    }
    values.update(overrides)
    return LiveAgentConfig(**values)


class TestLLMConfig:
    """LLMConfig frozen immutability and field access tests."""

    def test_frozen_immutability(self) -> None:
        config = LLMConfig(
            provider="openai",
            openai_api_key=SecretStr("key"),
            openai_model="gpt-4o-mini",
            anthropic_api_key=SecretStr(""),
            anthropic_model="claude-sonnet-4-20250514",
            max_history_messages=20,
        )
        with pytest.raises(ValidationError):
            config.provider = "anthropic"  # type: ignore[misc]


class TestAppConfig:
    """AppConfig frozen immutability and property tests."""

    def test_is_development(self) -> None:
        config = AppConfig(name="app", version="1", env="development", debug=True)
        assert config.is_development is True
        assert config.is_production is False
        assert config.creates_schema_on_startup is True

    def test_production_uses_migrations(self) -> None:
        config = AppConfig(name="app", version="1", env="production", debug=False)
        assert config.is_production is True
        assert config.creates_schema_on_startup is False


class TestLiveAgentConfig:
    """Live-agent policy helpers."""

    def test_frozen_immutability(self) -> None:
        config = _live_agent()
        with pytest.raises(ValidationError):
            config.auto_accept = True  # type: ignore[misc]

    def test_inactivity_timeout(self) -> None:
        assert _live_agent(inactivity_timeout_minutes=45).inactivity_timeout == timedelta(
            minutes=45
        )

    def test_clamp_wait_caps_at_maximum(self) -> None:
        config = _live_agent(max_wait_seconds=20.0)
        assert config.clamp_wait(120) == 20.0
        assert config.clamp_wait(3.5) == 3.5

    def test_clamp_wait_never_negative(self) -> None:
        assert _live_agent().clamp_wait(-1) == 0.0


class TestDatabaseConfig:
    """Database URL handling."""

    def test_mysql_gets_charset(self) -> None:
        config = DatabaseConfig(url=SecretStr("mysql+aiomysql://u:p@db/live"))
        assert config.async_url.endswith("?charset=utf8mb4")
        assert config.is_sqlite is False

    def test_sqlite_untouched(self) -> None:
        config = DatabaseConfig(url=SecretStr("sqlite+aiosqlite:///:memory:"))
        assert config.async_url == "sqlite+aiosqlite:///:memory:"
        assert config.is_sqlite is True


class TestNotificationConfig:
    def test_sender_falls_back_to_login(self) -> None:
        config = NotificationConfig(
            enabled=True,
            agent_email="agents@example.com",
            smtp_host="smtp.example.com",
            smtp_port=587,
            smtp_user="bot@example.com",
            smtp_password=SecretStr("pw"),
            smtp_from="",
        )
        assert config.sender == "bot@example.com"


class TestServerConfig:
    """ServerConfig field access tests."""

    def test_cors_origins_list(self) -> None:
        config = ServerConfig(
            host="0.0.0.0", port=8004, cors_origins="https://a.test, https://b.test,"
        )
        assert config.cors_origins_list == ["https://a.test", "https://b.test"]


class TestSettingsDomainProperties:
    """Settings domain property access tests."""

    def test_live_agent_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.live_agent.auto_accept is False
        assert s.live_agent.allow_guests is True
        assert s.live_agent.inactivity_timeout_minutes == 30
        assert s.live_agent.history_cap == 100
        assert s.live_agent.max_wait_seconds == 20.0
        assert s.live_agent.wait_interval_seconds == 0.5
        assert s.live_agent.typing_ttl_seconds == 5

    def test_live_agent_env_names(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LIVE_AUTO_ACCEPT", "true")
        monkeypatch.setenv("LIVE_ALLOW_GUESTS", "false")
        monkeypatch.setenv("LIVE_INACTIVITY_TIMEOUT_MINUTES", "15")
        monkeypatch.setenv("LIVE_HISTORY_CAP", "250")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.live_agent.auto_accept is True
        assert s.live_agent.allow_guests is False
        assert s.live_agent.inactivity_timeout == timedelta(minutes=15)
        assert s.live_agent.history_cap == 250

    def test_history_cap_hard_maximum(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LIVE_HISTORY_CAP", "501")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_auth_property(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHAT_TOKEN_HEADER", "X-Widget-Token")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.auth.header_name == "X-Widget-Token"
        assert s.auth.algorithm == "HS256"

    def test_secret_is_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CHAT_TOKEN_SECRET", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_notification_property(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOTIFY_EMAIL_ENABLED", "true")
        monkeypatch.setenv("NOTIFY_AGENT_EMAIL", "agents@example.com")
        monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.notification.enabled is True
        assert s.notification.agent_email == "agents@example.com"
        assert s.notification.smtp_port == 587

    def test_app_property(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_NAME", "support-chat")
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("DEBUG", "false")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.app.name == "support-chat"
        assert s.app.is_production is True
        assert s.is_development is False

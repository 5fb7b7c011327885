"""Application configuration using Pydantic Settings V2."""

from functools import cached_property
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.settings import (
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    LiveAgentConfig,
    LLMConfig,
    NotificationConfig,
    RedisConfig,
    ServerConfig,
)
from app.core.settings.app_config import Environment


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Flat fields are loaded directly from environment variables.
    Domain properties provide grouped access (e.g. settings.live_agent.auto_accept).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = Field(
        default="livechat-sync",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version reported by / and OpenAPI",
    )
    app_env: Environment = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Debug mode",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=8004,
        ge=1,
        le=65535,
        description="Server port",
    )
    cors_origins: str = Field(
        default="",
        description="Comma-separated origins allowed to embed the widget",
    )

    # Host token
    chat_token_secret: SecretStr = Field(
        description="Shared secret for verifying host-issued chat tokens",
    )
    chat_token_algorithm: str = Field(
        default="HS256",
        description="Chat token signing algorithm",
    )
    chat_token_expire_minutes: int = Field(
        default=720,
        ge=1,
        le=10080,
        description="Lifetime of tokens minted by TokenService",
    )
    chat_token_header: str = Field(
        default="X-Chat-Token",
        description="Request header carrying the chat token",
    )

    # Database
    database_url: SecretStr = Field(
        description="Async database URL (mysql+aiomysql://...)",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Live agent policy
    live_auto_accept: bool = Field(
        default=False,
        description="Activate new sessions without waiting for an agent",
    )
    live_allow_guests: bool = Field(
        default=True,
        description="Allow guest tokens to open live sessions",
    )
    live_inactivity_timeout_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Minutes of inactivity before a session is auto-closed",
    )
    live_history_cap: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Maximum messages returned by a single poll",
    )
    live_max_wait_seconds: float = Field(
        default=20.0,
        ge=0,
        le=55,
        description="Upper bound on how long a poll may be held open",
    )
    live_wait_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        le=5,
        description="Re-read interval while a poll is held open",
    )
    live_typing_ttl_seconds: int = Field(
        default=5,
        ge=1,
        le=60,
        description="Lifetime of a typing indicator flag",
    )
    live_presence_window_seconds: int = Field(
        default=300,
        ge=30,
        le=3600,
        description="How long an agent counts as online after its last request",
    )

    live_session_rate_limit: str = Field(
        default="5/minute",
        description="Session creation rate limit per client address",
    )

    # Notifications
    notify_email_enabled: bool = Field(
        default=False,
        description="Send email notifications for live-agent events",
    )
    notify_agent_email: str = Field(
        default="",
        description="Address that receives new live chat requests",
    )
    smtp_host: str = Field(default="", description="SMTP server host")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP port")
    smtp_user: str = Field(default="", description="SMTP login")
    smtp_password: SecretStr = Field(
        default=SecretStr(""),
        description="SMTP password",
    )
    smtp_from: str = Field(default="", description="Envelope sender address")

    # LLM Provider (assistant mode)
    llm_provider: Literal["openai", "anthropic"] = Field(
        default="openai",
        description="LLM provider to use",
    )
    openai_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model name",
    )
    anthropic_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Anthropic API key",
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Anthropic model name",
    )
    assistant_max_history: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Transcript messages forwarded to the assistant model",
    )

    # --- Domain properties ---

    @cached_property
    def app(self) -> AppConfig:
        """Application environment configuration."""
        return AppConfig(
            name=self.app_name,
            version=self.app_version,
            env=self.app_env,
            debug=self.debug,
        )

    @cached_property
    def server(self) -> ServerConfig:
        """Server configuration."""
        return ServerConfig(
            host=self.host,
            port=self.port,
            cors_origins=self.cors_origins,
        )

    @cached_property
    def auth(self) -> AuthConfig:
        """Host token verification configuration."""
        return AuthConfig(
            secret_key=self.chat_token_secret,
            algorithm=self.chat_token_algorithm,
            token_expire_minutes=self.chat_token_expire_minutes,
            header_name=self.chat_token_header,
        )

    @cached_property
    def database(self) -> DatabaseConfig:
        """Database connection configuration."""
        return DatabaseConfig(url=self.database_url)

    @cached_property
    def redis(self) -> RedisConfig:
        """Redis connection configuration."""
        return RedisConfig(url=self.redis_url)

    @cached_property
    def live_agent(self) -> LiveAgentConfig:
        """Live-agent session policy."""
        return LiveAgentConfig(
            auto_accept=self.live_auto_accept,
            allow_guests=self.live_allow_guests,
            inactivity_timeout_minutes=self.live_inactivity_timeout_minutes,
            history_cap=self.live_history_cap,
            max_wait_seconds=self.live_max_wait_seconds,
            wait_interval_seconds=self.live_wait_interval_seconds,
            typing_ttl_seconds=self.live_typing_ttl_seconds,
            session_rate_limit=self.live_session_rate_limit,
            presence_window_seconds=self.live_presence_window_seconds,
        )

    @cached_property
    def notification(self) -> NotificationConfig:
        """Email notification configuration."""
        return NotificationConfig(
            enabled=self.notify_email_enabled,
            agent_email=self.notify_agent_email,
            smtp_host=self.smtp_host,
            smtp_port=self.smtp_port,
            smtp_user=self.smtp_user,
            smtp_password=self.smtp_password,
            smtp_from=self.smtp_from,
        )

    @cached_property
    def llm(self) -> LLMConfig:
        """LLM provider configuration."""
        return LLMConfig(
            provider=self.llm_provider,
            openai_api_key=self.openai_api_key,
            openai_model=self.openai_model,
            anthropic_api_key=self.anthropic_api_key,
            anthropic_model=self.anthropic_model,
            max_history_messages=self.assistant_max_history,
        )

    # --- Convenience properties (delegate to domain configs) ---

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app.is_development


# Global settings instance
settings = Settings()

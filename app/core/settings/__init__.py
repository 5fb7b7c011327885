"""Domain-specific configuration models."""

from app.core.settings.app_config import AppConfig
from app.core.settings.auth_config import AuthConfig
from app.core.settings.database_config import DatabaseConfig
from app.core.settings.live_agent_config import LiveAgentConfig
from app.core.settings.llm_config import LLMConfig
from app.core.settings.notification_config import NotificationConfig
from app.core.settings.redis_config import RedisConfig
from app.core.settings.server_config import ServerConfig

__all__ = [
    "AppConfig",
    "AuthConfig",
    "DatabaseConfig",
    "LiveAgentConfig",
    "LLMConfig",
    "NotificationConfig",
    "RedisConfig",
    "ServerConfig",
]

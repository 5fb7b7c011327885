"""Application environment configuration."""

from typing import Literal

from pydantic import BaseModel

Environment = Literal["development", "test", "staging", "production"]


class AppConfig(BaseModel, frozen=True):
    """Application environment settings."""

    name: str
    version: str
    env: Environment
    debug: bool

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"

    @property
    def creates_schema_on_startup(self) -> bool:
        """Development and test runs build tables without migrations."""
        return self.env in ("development", "test")

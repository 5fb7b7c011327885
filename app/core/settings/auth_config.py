"""Host token verification configuration."""

from pydantic import BaseModel, SecretStr


class AuthConfig(BaseModel, frozen=True):
    """Settings for verifying host-issued chat tokens."""

    secret_key: SecretStr
    algorithm: str
    token_expire_minutes: int
    header_name: str

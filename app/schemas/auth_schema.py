"""Chat token payload schema."""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class TokenPayload(BaseModel):
    """Verified claims of a host-issued chat token."""

    model_config = ConfigDict(frozen=True)

    sub: str
    role: Literal["user", "agent"]
    name: str = ""
    email: str = ""
    jti: str = ""
    exp: int


class Actor(BaseModel):
    """Caller identity established by the token middleware."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["user", "agent"]
    name: str = ""
    email: str = ""

    @property
    def is_agent(self) -> bool:
        return self.role == "agent"

    @property
    def is_guest(self) -> bool:
        return self.id.startswith("guest:")

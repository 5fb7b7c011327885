"""Wire models as seen by the client."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SessionState = Literal["pending", "active", "closed"]

_LEGACY = {"accepted": "active", "declined": "closed"}


def normalize_state(value: str) -> str:
    """Fold legacy status spellings into the canonical three."""
    return _LEGACY.get(value, value)


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ChatMessage(WireModel):
    """A delivered message; ``id`` is the per-session sequence number."""

    id: int
    session_id: int
    sender: Literal["user", "agent", "system"]
    content: str = ""
    reply_to: int | None = None
    attachment: dict | None = None
    read: bool = False
    created_at: datetime | None = None


class CreatedSession(WireModel):
    session_id: int
    status: str


class PollPayload(WireModel):
    messages: list[ChatMessage] = Field(default_factory=list)
    status: str
    agent_typing: bool = False
    user_typing: bool = False
    last_id: int = 0
    has_more: bool = False


class AssistantTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

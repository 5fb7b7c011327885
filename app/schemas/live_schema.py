"""Live-agent request and response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.models.live_session import SessionStatus
from app.schemas.response_schema import CamelModel

# --- Requests ---


class UserMeta(BaseModel):
    """Snapshot of the visitor taken when a session is opened."""

    name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)


class CreateSessionRequest(CamelModel):
    user_meta: UserMeta = Field(default_factory=UserMeta)
    page_url: str = Field(default="", max_length=2048)
    user_agent: str = Field(default="", max_length=255)
    source: str = Field(default="widget", max_length=60)


class Attachment(BaseModel):
    """Reference to a file stored by the host; never the file itself."""

    id: int | str
    url: str = Field(..., max_length=2048)
    filename: str = Field(default="", max_length=255)


class SendMessageRequest(CamelModel):
    session_id: int = Field(..., ge=1)
    content: str = Field(default="", max_length=10000)
    reply_to: int | None = Field(default=None, ge=1)
    attachment: Attachment | None = None


class CloseSessionRequest(CamelModel):
    notes: str | None = Field(default=None, max_length=5000)


class RateSessionRequest(CamelModel):
    # Out-of-range values are clamped rather than rejected.
    stars: int
    comment: str | None = Field(default=None, max_length=2000)


class MarkReadRequest(CamelModel):
    session_id: int = Field(..., ge=1)


class TypingRequest(CamelModel):
    session_id: int = Field(..., ge=1)
    is_typing: bool


# --- Responses ---


class SessionCreatedResponse(CamelModel):
    session_id: int
    status: SessionStatus


class MessageCreatedResponse(CamelModel):
    message_id: int


class MessageOut(CamelModel):
    """A message as delivered to pollers; ``id`` is the per-session seq."""

    model_config = ConfigDict(frozen=True)

    id: int
    session_id: int
    sender: Literal["user", "agent", "system"]
    content: str
    reply_to: int | None = None
    attachment: dict | None = None
    read: bool
    created_at: datetime


class PollResponse(CamelModel):
    messages: list[MessageOut]
    status: SessionStatus
    agent_typing: bool = False
    user_typing: bool = False
    last_id: int
    has_more: bool = False


class SessionSummary(CamelModel):
    model_config = ConfigDict(frozen=True)

    session_id: int
    status: SessionStatus
    close_reason: str | None = None
    user_id: str
    user_name: str
    user_email: str
    agent_id: str | None = None
    page_url: str
    source: str
    started_at: datetime
    last_activity_at: datetime
    accepted_at: datetime | None = None
    ended_at: datetime | None = None
    last_id: int
    unread_count: int = 0
    rating_stars: int | None = None


class SessionEnvelope(CamelModel):
    session: SessionSummary | None = None


class SessionListResponse(CamelModel):
    sessions: list[SessionSummary]
    total: int


class RatingResponse(CamelModel):
    session_id: int
    stars: int


class MarkReadResponse(CamelModel):
    marked_count: int


class SessionExport(CamelModel):
    """Full record of a session for the agent console's download."""

    session: SessionSummary
    messages: list[MessageOut]
    notes: str | None = None
    rating_comment: str | None = None
    exported_at: datetime


class AgentsOnlineResponse(CamelModel):
    agents_online: int
    average_wait_time: int

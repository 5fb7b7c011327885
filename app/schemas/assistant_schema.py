"""Assistant mode request and response schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.response_schema import CamelModel


class TranscriptMessage(BaseModel):
    """One turn of the client-held assistant transcript."""

    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=4000)


class AssistantReplyRequest(CamelModel):
    messages: list[TranscriptMessage] = Field(..., min_length=1)


class AssistantReplyResponse(CamelModel):
    reply: str

"""Live-agent message database model."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Sender(StrEnum):
    """Author of a live message."""

    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class LiveMessage(Base):
    """Append-only message in a live session, ordered by ``seq``."""

    __tablename__ = "live_messages"
    __table_args__ = (
        UniqueConstraint("session_id", "seq", name="uq_live_messages_session_seq"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("live_sessions.id"), nullable=False, index=True
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    sender: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reply_to_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    attachment: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

"""Live-agent session database model."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class SessionStatus(StrEnum):
    """Canonical session states. ``closed`` is terminal."""

    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


class CloseReason(StrEnum):
    """Why a session reached ``closed``."""

    DECLINED = "declined"
    CLOSED_BY_AGENT = "closed_by_agent"
    CLOSED_BY_USER = "closed_by_user"
    TIMEOUT = "timeout"
    ABANDONED = "abandoned"


# Older widgets send these; they are never stored.
LEGACY_STATUS_SYNONYMS: dict[str, SessionStatus] = {
    "accepted": SessionStatus.ACTIVE,
    "declined": SessionStatus.CLOSED,
}

OPEN_STATUSES: tuple[str, ...] = (SessionStatus.PENDING, SessionStatus.ACTIVE)


def normalize_status(value: str) -> SessionStatus:
    """Map a wire status (including legacy synonyms) to the canonical enum."""
    key = value.strip().lower()
    if key in LEGACY_STATUS_SYNONYMS:
        return LEGACY_STATUS_SYNONYMS[key]
    return SessionStatus(key)


class LiveSession(Base):
    """One end-to-end live-agent conversation between a user and an agent."""

    __tablename__ = "live_sessions"
    __table_args__ = (
        Index("ix_live_sessions_user_id_status", "user_id", "status"),
        Index("ix_live_sessions_status_last_activity_at", "status", "last_activity_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SessionStatus.PENDING
    )
    close_reason: Mapped[str | None] = mapped_column(String(30), nullable=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    agent_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    agent_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    user_ip: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    user_agent: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    page_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source: Mapped[str] = mapped_column(String(60), nullable=False, default="widget")

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rating_stars: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    rating_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    rated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_closed(self) -> bool:
        return self.status == SessionStatus.CLOSED

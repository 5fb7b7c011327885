"""Live chat repository for session and message database operations."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.live_message import LiveMessage
from app.models.live_session import OPEN_STATUSES, LiveSession, SessionStatus


class LiveChatRepository:
    """Encapsulates live session and message queries.

    The repository never commits on its own; the request-scoped session
    (or a script's session) owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- Sessions ---

    async def find_session(self, session_id: int) -> LiveSession | None:
        """Find a session by primary key, bypassing stale identity-map state."""
        result = await self._session.execute(
            select(LiveSession)
            .where(LiveSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_open_session_by_user(self, user_id: str) -> LiveSession | None:
        """Most recently active non-closed session for a user."""
        result = await self._session.execute(
            select(LiveSession)
            .where(
                and_(
                    LiveSession.user_id == user_id,
                    LiveSession.status.in_(OPEN_STATUSES),
                )
            )
            .order_by(LiveSession.last_activity_at.desc(), LiveSession.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_session(self, **fields: Any) -> LiveSession:
        """Insert a new session row."""
        live_session = LiveSession(**fields)
        self._session.add(live_session)
        await self._session.flush()
        await self._session.refresh(live_session)
        return live_session

    async def update_session(self, session_id: int, **values: Any) -> None:
        """Unconditionally update columns of a session (last writer wins)."""
        await self._session.execute(
            update(LiveSession)
            .where(LiveSession.id == session_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def compare_and_set_status(
        self, session_id: int, expected: str, **values: Any
    ) -> bool:
        """Update a session only if its status still equals ``expected``.

        Returns True when this call won the race.
        """
        result = await self._session.execute(
            update(LiveSession)
            .where(and_(LiveSession.id == session_id, LiveSession.status == expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def claim_unassigned(
        self, session_id: int, agent_id: str, **values: Any
    ) -> bool:
        """Assign an active session that has no agent yet. True if this call won."""
        result = await self._session.execute(
            update(LiveSession)
            .where(
                and_(
                    LiveSession.id == session_id,
                    LiveSession.status == SessionStatus.ACTIVE,
                    LiveSession.agent_id.is_(None),
                )
            )
            .values(agent_id=agent_id, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def close_if_inactive(
        self, session_id: int, cutoff: datetime, **values: Any
    ) -> bool:
        """Close a session only if it is still open and idle past ``cutoff``."""
        result = await self._session.execute(
            update(LiveSession)
            .where(
                and_(
                    LiveSession.id == session_id,
                    LiveSession.status.in_(OPEN_STATUSES),
                    LiveSession.last_activity_at < cutoff,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def find_inactive_session_ids(self, cutoff: datetime) -> list[int]:
        """Ids of open sessions whose last activity is older than ``cutoff``."""
        result = await self._session.execute(
            select(LiveSession.id)
            .where(
                and_(
                    LiveSession.status.in_(OPEN_STATUSES),
                    LiveSession.last_activity_at < cutoff,
                )
            )
            .order_by(LiveSession.id.asc())
        )
        return list(result.scalars().all())

    async def find_sessions_by_status(
        self,
        statuses: Sequence[str],
        limit: int,
        agent_id: str | None = None,
    ) -> list[LiveSession]:
        """Sessions in any of ``statuses``, most recently active first."""
        stmt = select(LiveSession).where(LiveSession.status.in_(statuses))
        if agent_id is not None:
            stmt = stmt.where(LiveSession.agent_id == agent_id)
        stmt = stmt.order_by(
            LiveSession.last_activity_at.desc(), LiveSession.id.desc()
        ).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def find_accept_waits(self, since: datetime) -> list[tuple[datetime, datetime]]:
        """(started_at, accepted_at) of sessions started after ``since`` and accepted."""
        result = await self._session.execute(
            select(LiveSession.started_at, LiveSession.accepted_at).where(
                and_(
                    LiveSession.started_at >= since,
                    LiveSession.accepted_at.is_not(None),
                )
            )
        )
        return [(row.started_at, row.accepted_at) for row in result.all()]

    # --- Messages ---

    async def next_seq(self, session_id: int, now: datetime) -> int:
        """Reserve the next sequence number of a session.

        The increment is a single UPDATE, so the database row lock
        serializes concurrent appends; the value is read back inside the
        same transaction.
        """
        await self._session.execute(
            update(LiveSession)
            .where(LiveSession.id == session_id)
            .values(last_seq=LiveSession.last_seq + 1, last_activity_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(
            select(LiveSession.last_seq).where(LiveSession.id == session_id)
        )
        return int(result.scalar_one())

    async def create_message(
        self,
        session_id: int,
        seq: int,
        sender: str,
        content: str,
        created_at: datetime,
        reply_to_id: int | None = None,
        attachment: dict[str, Any] | None = None,
    ) -> LiveMessage:
        """Insert a message with an already reserved sequence number."""
        message = LiveMessage(
            session_id=session_id,
            seq=seq,
            sender=sender,
            content=content,
            reply_to_id=reply_to_id,
            attachment=attachment,
            read=False,
            created_at=created_at,
        )
        self._session.add(message)
        await self._session.flush()
        await self._session.refresh(message)
        return message

    async def find_messages_after(
        self, session_id: int, after_seq: int, limit: int
    ) -> list[LiveMessage]:
        """Oldest ``limit`` messages with seq greater than ``after_seq``."""
        result = await self._session.execute(
            select(LiveMessage)
            .where(
                and_(
                    LiveMessage.session_id == session_id,
                    LiveMessage.seq > after_seq,
                )
            )
            .order_by(LiveMessage.seq.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_all_messages(self, session_id: int) -> list[LiveMessage]:
        """Every message of a session in seq order."""
        result = await self._session.execute(
            select(LiveMessage)
            .where(LiveMessage.session_id == session_id)
            .order_by(LiveMessage.seq.asc())
        )
        return list(result.scalars().all())

    async def find_latest_messages(
        self, session_id: int, limit: int
    ) -> list[LiveMessage]:
        """Most recent ``limit`` messages, returned in ascending seq order."""
        result = await self._session.execute(
            select(LiveMessage)
            .where(LiveMessage.session_id == session_id)
            .order_by(LiveMessage.seq.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return sorted(result.scalars().all(), key=lambda m: m.seq)

    async def mark_read_from_sender(self, session_id: int, sender: str) -> int:
        """Flip ``read`` on unread messages written by ``sender``."""
        result = await self._session.execute(
            update(LiveMessage)
            .where(
                and_(
                    LiveMessage.session_id == session_id,
                    LiveMessage.sender == sender,
                    LiveMessage.read.is_(False),
                )
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def count_unread_from_sender(self, session_id: int, sender: str) -> int:
        """Unread messages written by ``sender``."""
        result = await self._session.execute(
            select(func.count(LiveMessage.id)).where(
                and_(
                    LiveMessage.session_id == session_id,
                    LiveMessage.sender == sender,
                    LiveMessage.read.is_(False),
                )
            )
        )
        return int(result.scalar_one())

    async def release_snapshot(self) -> None:
        """End the current read transaction so the next query sees new commits."""
        await self._session.commit()

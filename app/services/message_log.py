"""Service layer for the append-only live message log."""

from typing import Any

import structlog

from app.core.clock import Clock, as_utc, utc_now
from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    InvalidMessageError,
    SessionClosedError,
    SessionNotFoundError,
)
from app.models.live_message import LiveMessage, Sender
from app.models.live_session import LiveSession, SessionStatus
from app.repositories.live_chat_repo import LiveChatRepository
from app.schemas.auth_schema import Actor
from app.schemas.live_schema import MessageOut

logger = structlog.get_logger()

# Unread counts are what the *other* side wrote.
_COUNTERPART: dict[str, Sender] = {
    "user": Sender.AGENT,
    "agent": Sender.USER,
}


def to_message_out(message: LiveMessage) -> MessageOut:
    """Wire form of a stored message; ``id`` is the per-session seq."""
    return MessageOut(
        id=message.seq,
        session_id=message.session_id,
        sender=message.sender,
        content=message.content,
        reply_to=message.reply_to_id,
        attachment=message.attachment,
        read=message.read,
        created_at=as_utc(message.created_at),
    )


class MessageLogService:
    """Appends messages with store-assigned sequence numbers and reads them back."""

    def __init__(
        self,
        repo: LiveChatRepository,
        history_cap: int | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repo
        self._history_cap = (
            settings.live_agent.history_cap if history_cap is None else history_cap
        )
        self._clock = clock

    async def append(
        self,
        session_id: int,
        sender: Sender,
        text: str,
        reply_to_id: int | None = None,
        attachment: dict[str, Any] | None = None,
        allow_closed: bool = False,
        actor: Actor | None = None,
    ) -> LiveMessage:
        """Append a message and return it with its assigned seq.

        Raises:
            SessionNotFoundError: unknown session.
            SessionClosedError: the session is closed and ``allow_closed`` is False.
            InvalidMessageError: no text and no attachment.
            AuthorizationError: the actor is not a participant.
        """
        live_session = await self._repo.find_session(session_id)
        if live_session is None:
            raise SessionNotFoundError(session_id)
        if live_session.status == SessionStatus.CLOSED and not allow_closed:
            raise SessionClosedError(session_id)

        content = (text or "").strip()
        if not content and not attachment:
            raise InvalidMessageError()

        if actor is not None:
            await self._authorize(live_session, sender, actor)

        now = self._clock()
        seq = await self._repo.next_seq(session_id, now)
        message = await self._repo.create_message(
            session_id=session_id,
            seq=seq,
            sender=sender,
            content=content,
            created_at=now,
            reply_to_id=reply_to_id,
            attachment=attachment,
        )
        logger.debug("Live message appended", session_id=session_id, seq=seq, sender=sender)
        return message

    async def _authorize(
        self, live_session: LiveSession, sender: Sender, actor: Actor
    ) -> None:
        if sender == Sender.USER:
            if actor.is_agent or live_session.user_id != actor.id:
                raise AuthorizationError(message="Not authorized to post to this session")
            return

        if sender != Sender.AGENT or not actor.is_agent:
            raise AuthorizationError(message="Not authorized to post as this sender")

        if live_session.agent_id is not None:
            if live_session.agent_id != actor.id:
                raise AuthorizationError(message="Session is assigned to another agent")
            return

        # An agent replying to an unassigned session takes it over.
        now = self._clock()
        if live_session.status == SessionStatus.PENDING:
            won = await self._repo.compare_and_set_status(
                live_session.id,
                SessionStatus.PENDING,
                status=SessionStatus.ACTIVE,
                agent_id=actor.id,
                agent_email=actor.email or None,
                accepted_at=now,
                last_activity_at=now,
            )
        else:
            won = await self._repo.claim_unassigned(
                live_session.id,
                actor.id,
                agent_email=actor.email or None,
                last_activity_at=now,
            )
        if not won:
            fresh = await self._repo.find_session(live_session.id)
            if fresh is None or fresh.agent_id != actor.id:
                raise AuthorizationError(message="Session is assigned to another agent")
            return
        logger.info(
            "Live session accepted by reply",
            session_id=live_session.id,
            agent_id=actor.id,
        )

    async def since(
        self,
        session_id: int,
        after_seq: int = 0,
        limit: int | None = None,
    ) -> tuple[list[LiveMessage], bool]:
        """Messages newer than ``after_seq`` in ascending seq order.

        ``after_seq == 0`` replays the most recent ``limit`` messages.
        Otherwise the oldest ``limit`` newer messages are returned and
        ``has_more`` tells the caller to ask again right away.
        """
        cap = min(limit or self._history_cap, 500)
        if after_seq <= 0:
            return await self._repo.find_latest_messages(session_id, cap), False

        rows = await self._repo.find_messages_after(session_id, after_seq, cap + 1)
        return rows[:cap], len(rows) > cap

    async def transcript(self, session_id: int) -> list[MessageOut]:
        """Every message of a session in wire form, uncapped."""
        return [to_message_out(m) for m in await self._repo.find_all_messages(session_id)]

    async def mark_read(self, session_id: int, reader_role: str) -> int:
        """Mark the counterpart's messages as read; returns how many flipped."""
        live_session = await self._repo.find_session(session_id)
        if live_session is None:
            raise SessionNotFoundError(session_id)
        count = await self._repo.mark_read_from_sender(
            session_id, _COUNTERPART[reader_role]
        )
        if count:
            logger.debug("Live messages marked read", session_id=session_id, count=count)
        return count

    async def unread_count(self, session_id: int, viewer_role: str) -> int:
        return await self._repo.count_unread_from_sender(
            session_id, _COUNTERPART[viewer_role]
        )

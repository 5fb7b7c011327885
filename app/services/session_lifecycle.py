"""Service layer for the live session state machine."""

from datetime import timedelta

import structlog

from app.core.clock import Clock, as_utc, as_utc_or_none, utc_now
from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    SessionNotFoundError,
)
from app.core.settings import LiveAgentConfig
from app.models.live_message import Sender
from app.models.live_session import (
    CloseReason,
    LiveSession,
    SessionStatus,
)
from app.repositories.live_chat_repo import LiveChatRepository
from app.schemas.auth_schema import Actor
from app.schemas.live_schema import SessionExport, SessionSummary, UserMeta
from app.services.message_log import MessageLogService

logger = structlog.get_logger()

CLOSING_MESSAGE = "Chat session ended"
DEFAULT_WAIT_SECONDS = 60
WAIT_SAMPLE_WINDOW = timedelta(hours=24)


def ensure_participant(live_session: LiveSession, actor: Actor) -> None:
    """Agents see every session; users only their own."""
    if actor.is_agent:
        return
    if live_session.user_id != actor.id:
        raise AuthorizationError(message="Not authorized to access this session")


class SessionLifecycleService:
    """Owns session creation and every status transition.

    Allowed transitions::

        pending -> active   (agent accept or auto-accept, compare-and-set)
        active  -> active   (same agent only, no-op)
        *       -> closed   (always; closed -> closed is a no-op)
    """

    def __init__(
        self,
        repo: LiveChatRepository,
        message_log: MessageLogService,
        policy: LiveAgentConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repo
        self._messages = message_log
        self._policy = policy or settings.live_agent
        self._clock = clock

    async def get(self, session_id: int) -> LiveSession:
        """Load a session or raise SessionNotFoundError."""
        live_session = await self._repo.find_session(session_id)
        if live_session is None:
            raise SessionNotFoundError(session_id)
        return live_session

    async def create(
        self,
        actor: Actor,
        user_meta: UserMeta | None = None,
        page_url: str = "",
        user_agent: str = "",
        user_ip: str = "",
        source: str = "widget",
    ) -> tuple[LiveSession, bool]:
        """Return the caller's open session, opening one if none exists.

        Returns:
            Tuple of (session, created). ``created`` is False when an
            existing pending or active session was reused.
        """
        if actor.is_agent:
            raise AuthorizationError(message="Agents cannot open live sessions")
        if actor.is_guest and not self._policy.allow_guests:
            raise AuthorizationError(message="Guests cannot open live sessions")

        existing = await self._repo.find_open_session_by_user(actor.id)
        if existing is not None:
            logger.info(
                "Live session reused",
                session_id=existing.id,
                user_id=actor.id,
                status=existing.status,
            )
            return existing, False

        meta = user_meta or UserMeta()
        now = self._clock()
        live_session = await self._repo.create_session(
            status=SessionStatus.PENDING,
            user_id=actor.id,
            user_name=meta.name or actor.name,
            user_email=meta.email or actor.email,
            user_ip=user_ip,
            user_agent=user_agent[:255],
            page_url=page_url,
            source=source,
            last_seq=0,
            started_at=now,
            last_activity_at=now,
        )
        logger.info("Live session created", session_id=live_session.id, user_id=actor.id)

        if self._policy.auto_accept:
            live_session = await self.transition(live_session.id, SessionStatus.ACTIVE)

        return live_session, True

    async def transition(
        self,
        session_id: int,
        target: SessionStatus,
        acting_agent_id: str | None = None,
        reason: CloseReason | None = None,
        agent_email: str | None = None,
        notes: str | None = None,
    ) -> LiveSession:
        """Move a session to ``target`` or raise InvalidTransitionError."""
        live_session = await self.get(session_id)
        current = SessionStatus(live_session.status)

        if target == SessionStatus.CLOSED:
            if current == SessionStatus.CLOSED:
                return live_session
            return await self._close(live_session, reason, notes)

        if target == SessionStatus.ACTIVE:
            if current == SessionStatus.PENDING:
                return await self._activate(live_session, acting_agent_id, agent_email)
            if current == SessionStatus.ACTIVE:
                if acting_agent_id is not None and acting_agent_id == live_session.agent_id:
                    return live_session
                if acting_agent_id is not None and live_session.agent_id is None:
                    return await self._claim(live_session, acting_agent_id, agent_email)
                raise InvalidTransitionError(
                    current, target, "session is assigned to another agent"
                )

        raise InvalidTransitionError(current, target)

    async def _activate(
        self,
        live_session: LiveSession,
        agent_id: str | None,
        agent_email: str | None,
    ) -> LiveSession:
        if agent_id is None and not self._policy.auto_accept:
            raise InvalidTransitionError(
                SessionStatus.PENDING, SessionStatus.ACTIVE, "an agent is required"
            )

        now = self._clock()
        won = await self._repo.compare_and_set_status(
            live_session.id,
            SessionStatus.PENDING,
            status=SessionStatus.ACTIVE,
            agent_id=agent_id,
            agent_email=agent_email,
            accepted_at=now,
            last_activity_at=now,
        )
        if not won:
            # Another request moved the session first; re-evaluate against it.
            fresh = await self.get(live_session.id)
            if fresh.status == SessionStatus.ACTIVE and fresh.agent_id == agent_id:
                return fresh
            raise InvalidTransitionError(
                fresh.status, SessionStatus.ACTIVE, "session was already taken"
            )

        logger.info(
            "Live session activated",
            session_id=live_session.id,
            agent_id=agent_id,
        )
        return await self.get(live_session.id)

    async def _claim(
        self,
        live_session: LiveSession,
        agent_id: str,
        agent_email: str | None,
    ) -> LiveSession:
        """Assign an auto-accepted session to the first agent that takes it."""
        won = await self._repo.claim_unassigned(
            live_session.id,
            agent_id,
            agent_email=agent_email,
            last_activity_at=self._clock(),
        )
        fresh = await self.get(live_session.id)
        if not won and fresh.agent_id != agent_id:
            raise InvalidTransitionError(
                fresh.status, SessionStatus.ACTIVE, "session was already taken"
            )
        logger.info("Live session claimed", session_id=live_session.id, agent_id=agent_id)
        return fresh

    async def _close(
        self,
        live_session: LiveSession,
        reason: CloseReason | None,
        notes: str | None,
    ) -> LiveSession:
        now = self._clock()
        values: dict = {
            "status": SessionStatus.CLOSED,
            "close_reason": reason or CloseReason.ABANDONED,
            "ended_at": now,
            "last_activity_at": now,
        }
        if notes:
            values["notes"] = notes
        await self._repo.update_session(live_session.id, **values)
        await self._messages.append(
            live_session.id,
            Sender.SYSTEM,
            CLOSING_MESSAGE,
            allow_closed=True,
        )
        logger.info(
            "Live session closed",
            session_id=live_session.id,
            reason=values["close_reason"],
        )
        return await self.get(live_session.id)

    async def accept(self, session_id: int, agent: Actor) -> LiveSession:
        """Agent takes a pending session."""
        return await self.transition(
            session_id,
            SessionStatus.ACTIVE,
            acting_agent_id=agent.id,
            agent_email=agent.email or None,
        )

    async def decline(self, session_id: int, agent: Actor) -> LiveSession:
        """Agent refuses a session; only pending sessions can be declined."""
        live_session = await self.get(session_id)
        if live_session.status == SessionStatus.ACTIVE:
            raise InvalidTransitionError(
                live_session.status, SessionStatus.CLOSED, "use close for active sessions"
            )
        logger.info("Live session declined", session_id=session_id, agent_id=agent.id)
        return await self.transition(
            session_id, SessionStatus.CLOSED, reason=CloseReason.DECLINED
        )

    async def close(
        self, session_id: int, actor: Actor, notes: str | None = None
    ) -> LiveSession:
        """Close on behalf of a participant. Idempotent."""
        live_session = await self.get(session_id)
        ensure_participant(live_session, actor)
        if actor.is_agent:
            if live_session.agent_id not in (None, actor.id):
                raise AuthorizationError(message="Session is assigned to another agent")
            reason = CloseReason.CLOSED_BY_AGENT
        else:
            reason = CloseReason.CLOSED_BY_USER
            notes = None
        return await self.transition(
            session_id, SessionStatus.CLOSED, reason=reason, notes=notes
        )

    async def timeout_sweep(self, inactivity_threshold: timedelta | None = None) -> int:
        """Close every open session idle for longer than the threshold.

        Each close is conditional on the session still being idle, so a
        message racing the sweep keeps its session open.
        """
        threshold = (
            self._policy.inactivity_timeout
            if inactivity_threshold is None
            else inactivity_threshold
        )
        now = self._clock()
        cutoff = now - threshold
        closed = 0
        for session_id in await self._repo.find_inactive_session_ids(cutoff):
            won = await self._repo.close_if_inactive(
                session_id,
                cutoff,
                status=SessionStatus.CLOSED,
                close_reason=CloseReason.TIMEOUT,
                ended_at=now,
            )
            if not won:
                continue
            await self._messages.append(
                session_id, Sender.SYSTEM, CLOSING_MESSAGE, allow_closed=True
            )
            closed += 1
        if closed:
            logger.info("Inactive live sessions closed", count=closed)
        return closed

    async def current_status(self, session_id: int) -> SessionStatus:
        live_session = await self.get(session_id)
        return SessionStatus(live_session.status)

    async def find_current(self, user_id: str) -> LiveSession | None:
        """The user's open session, if any."""
        return await self._repo.find_open_session_by_user(user_id)

    async def rate(
        self, session_id: int, actor: Actor, stars: int, comment: str | None = None
    ) -> LiveSession:
        """Record the owner's rating; stars are clamped to 1..5."""
        live_session = await self.get(session_id)
        if actor.is_agent or live_session.user_id != actor.id:
            raise AuthorizationError(message="Only the session owner can rate it")
        clamped = max(1, min(5, stars))
        await self._repo.update_session(
            session_id,
            rating_stars=clamped,
            rating_comment=comment,
            rated_at=self._clock(),
        )
        logger.info("Live session rated", session_id=session_id, stars=clamped)
        return await self.get(session_id)

    async def list_by_status(
        self,
        statuses: list[SessionStatus] | None = None,
        agent_id: str | None = None,
        limit: int = 50,
    ) -> list[LiveSession]:
        """Sessions for the agent console, most recently active first."""
        wanted = statuses or [SessionStatus.PENDING, SessionStatus.ACTIVE]
        return await self._repo.find_sessions_by_status(
            [str(s) for s in wanted], limit, agent_id=agent_id
        )

    async def summary(self, live_session: LiveSession, viewer: Actor) -> SessionSummary:
        """Wire summary of a session with the viewer's unread count."""
        unread = await self._messages.unread_count(live_session.id, viewer.role)
        return SessionSummary(
            session_id=live_session.id,
            status=SessionStatus(live_session.status),
            close_reason=live_session.close_reason,
            user_id=live_session.user_id,
            user_name=live_session.user_name,
            user_email=live_session.user_email,
            agent_id=live_session.agent_id,
            page_url=live_session.page_url,
            source=live_session.source,
            started_at=as_utc(live_session.started_at),
            last_activity_at=as_utc(live_session.last_activity_at),
            accepted_at=as_utc_or_none(live_session.accepted_at),
            ended_at=as_utc_or_none(live_session.ended_at),
            last_id=live_session.last_seq,
            unread_count=unread,
            rating_stars=live_session.rating_stars,
        )

    async def export(self, session_id: int, agent: Actor) -> SessionExport:
        """Summary, full transcript and agent notes of one session."""
        live_session = await self.get(session_id)
        ensure_participant(live_session, agent)
        return SessionExport(
            session=await self.summary(live_session, agent),
            messages=await self._messages.transcript(session_id),
            notes=live_session.notes,
            rating_comment=live_session.rating_comment,
            exported_at=self._clock(),
        )

    async def average_wait_seconds(self) -> int:
        """Mean pending-to-accepted wait over recent sessions."""
        since = self._clock() - WAIT_SAMPLE_WINDOW
        waits = [
            (as_utc(accepted) - as_utc(started)).total_seconds()
            for started, accepted in await self._repo.find_accept_waits(since)
        ]
        if not waits:
            return DEFAULT_WAIT_SECONDS
        return round(sum(waits) / len(waits))

"""Server side of the polling transport."""

import asyncio
import hashlib
from dataclasses import dataclass

import structlog

from app.core.clock import as_utc
from app.core.config import settings
from app.core.exceptions import SessionNotFoundError
from app.core.settings import LiveAgentConfig
from app.models.live_session import LiveSession, SessionStatus
from app.repositories.live_chat_repo import LiveChatRepository
from app.schemas.auth_schema import Actor
from app.schemas.live_schema import PollResponse
from app.services.message_log import MessageLogService, to_message_out
from app.services.session_lifecycle import ensure_participant
from app.services.typing_service import TypingService

logger = structlog.get_logger()


@dataclass(frozen=True)
class PollResult:
    """Poll payload plus the validator the router turns into headers."""

    response: PollResponse
    etag: str
    not_modified: bool = False


def compute_etag(
    live_session: LiveSession, agent_typing: bool, user_typing: bool
) -> str:
    """Weak validator over everything a poll response depends on."""
    raw = "|".join(
        (
            str(live_session.id),
            str(live_session.last_seq),
            str(live_session.status),
            as_utc(live_session.last_activity_at).isoformat(),
            "1" if agent_typing else "0",
            "1" if user_typing else "0",
        )
    )
    return f'W/"{hashlib.md5(raw.encode()).hexdigest()}"'


class PollService:
    """Answers poll requests, optionally holding them until something changes.

    A held request re-reads the store every ``wait_interval_seconds`` in a
    fresh snapshot and returns as soon as messages arrive, the status
    changes, or the clamped wait expires.
    """

    def __init__(
        self,
        repo: LiveChatRepository,
        message_log: MessageLogService,
        typing: TypingService,
        policy: LiveAgentConfig | None = None,
    ) -> None:
        self._repo = repo
        self._messages = message_log
        self._typing = typing
        self._policy = policy or settings.live_agent

    async def _load(self, session_id: int) -> LiveSession:
        live_session = await self._repo.find_session(session_id)
        if live_session is None:
            raise SessionNotFoundError(session_id)
        return live_session

    async def poll(
        self,
        session_id: int,
        actor: Actor,
        after: int = 0,
        wait: float = 0.0,
        limit: int | None = None,
        if_none_match: str | None = None,
    ) -> PollResult:
        """Return messages newer than ``after`` with session status and typing flags."""
        live_session = await self._load(session_id)
        ensure_participant(live_session, actor)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._policy.clamp_wait(wait)
        initial_status = live_session.status

        while True:
            messages, has_more = await self._messages.since(session_id, after, limit)
            if (
                messages
                or live_session.status != initial_status
                or live_session.status == SessionStatus.CLOSED
                or loop.time() >= deadline
            ):
                break
            await self._repo.release_snapshot()
            await asyncio.sleep(
                min(self._policy.wait_interval_seconds, max(0.0, deadline - loop.time()))
            )
            live_session = await self._load(session_id)

        agent_typing, user_typing = await self._typing.flags(session_id)
        etag = compute_etag(live_session, agent_typing, user_typing)
        last_id = messages[-1].seq if messages else live_session.last_seq

        response = PollResponse(
            messages=[to_message_out(m) for m in messages],
            status=SessionStatus(live_session.status),
            agent_typing=agent_typing,
            user_typing=user_typing,
            last_id=last_id,
            has_more=has_more,
        )
        not_modified = not messages and if_none_match is not None and if_none_match == etag
        if messages:
            logger.debug(
                "Live poll delivered",
                session_id=session_id,
                after=after,
                count=len(messages),
                last_id=last_id,
            )
        return PollResult(response=response, etag=etag, not_modified=not_modified)

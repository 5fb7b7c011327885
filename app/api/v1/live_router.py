"""Live-agent chat API router."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_async_session
from app.core.exceptions import AppException
from app.core.limiter import limiter
from app.dependencies import (
    get_current_actor,
    get_message_log_service,
    get_poll_service,
    get_presence_service,
    get_session_lifecycle_service,
    get_typing_service,
    require_role,
    track_agent_presence,
)
from app.models.live_message import Sender
from app.models.live_session import SessionStatus, normalize_status
from app.schemas.auth_schema import Actor
from app.schemas.live_schema import (
    AgentsOnlineResponse,
    CloseSessionRequest,
    CreateSessionRequest,
    MarkReadRequest,
    MarkReadResponse,
    MessageCreatedResponse,
    PollResponse,
    RateSessionRequest,
    RatingResponse,
    SendMessageRequest,
    SessionCreatedResponse,
    SessionEnvelope,
    SessionExport,
    SessionListResponse,
    TypingRequest,
)
from app.schemas.response_schema import EmptyResponse
from app.services.message_log import MessageLogService
from app.services.notification_service import notify_new_message, notify_new_session
from app.services.poll_service import PollService
from app.services.presence_service import PresenceService
from app.services.session_lifecycle import SessionLifecycleService, ensure_participant
from app.services.typing_service import TypingService

router = APIRouter(
    prefix="/api/v1/live",
    tags=["live"],
    dependencies=[Depends(track_agent_presence)],
)

ActorDep = Annotated[Actor, Depends(get_current_actor)]
DbSessionDep = Annotated[AsyncSession, Depends(get_async_session)]
AgentDep = Annotated[Actor, Depends(require_role("agent"))]
LifecycleDep = Annotated[SessionLifecycleService, Depends(get_session_lifecycle_service)]
MessageLogDep = Annotated[MessageLogService, Depends(get_message_log_service)]
PollServiceDep = Annotated[PollService, Depends(get_poll_service)]
PresenceServiceDep = Annotated[PresenceService, Depends(get_presence_service)]
TypingServiceDep = Annotated[TypingService, Depends(get_typing_service)]


def _parse_status(value: str | None) -> SessionStatus | None:
    if not value:
        return None
    try:
        return normalize_status(value)
    except ValueError as exc:
        raise AppException(
            message=f"status: unknown session status '{value}'",
            code="VALIDATION_ERROR",
            status_code=422,
        ) from exc


# --- Sessions ---


@router.post("/session", status_code=201, response_model=SessionCreatedResponse)
@limiter.limit(settings.live_agent.session_rate_limit)
async def create_session(
    request: Request,
    body: CreateSessionRequest,
    actor: ActorDep,
    lifecycle: LifecycleDep,
    db_session: DbSessionDep,
    background_tasks: BackgroundTasks,
) -> SessionCreatedResponse:
    """Open a live session, or return the caller's open one."""
    live_session, created = await lifecycle.create(
        actor,
        user_meta=body.user_meta,
        page_url=body.page_url,
        user_agent=body.user_agent or request.headers.get("user-agent", ""),
        user_ip=request.client.host if request.client else "",
        source=body.source,
    )
    if created:
        # Background tasks run before the dependency teardown commits.
        await db_session.commit()
        background_tasks.add_task(notify_new_session, session_id=live_session.id)
    return SessionCreatedResponse(
        session_id=live_session.id,
        status=SessionStatus(live_session.status),
    )


@router.get("/session/mine", response_model=SessionEnvelope)
async def my_session(actor: ActorDep, lifecycle: LifecycleDep) -> SessionEnvelope:
    """The caller's open session, if any."""
    live_session = await lifecycle.find_current(actor.id)
    if live_session is None:
        return SessionEnvelope(session=None)
    return SessionEnvelope(session=await lifecycle.summary(live_session, actor))


@router.get("/session/{session_id}", response_model=SessionEnvelope)
async def get_session(
    session_id: int, actor: ActorDep, lifecycle: LifecycleDep
) -> SessionEnvelope:
    live_session = await lifecycle.get(session_id)
    ensure_participant(live_session, actor)
    return SessionEnvelope(session=await lifecycle.summary(live_session, actor))


@router.post("/session/{session_id}/close", response_model=EmptyResponse)
async def close_session(
    session_id: int,
    actor: ActorDep,
    lifecycle: LifecycleDep,
    body: CloseSessionRequest | None = None,
) -> EmptyResponse:
    """Close a session. Closing an already closed session succeeds."""
    await lifecycle.close(session_id, actor, notes=body.notes if body else None)
    return EmptyResponse()


@router.post("/session/{session_id}/accept", response_model=SessionCreatedResponse)
async def accept_session(
    session_id: int, agent: AgentDep, lifecycle: LifecycleDep
) -> SessionCreatedResponse:
    live_session = await lifecycle.accept(session_id, agent)
    return SessionCreatedResponse(
        session_id=live_session.id,
        status=SessionStatus(live_session.status),
    )


@router.post("/session/{session_id}/decline", response_model=SessionCreatedResponse)
async def decline_session(
    session_id: int, agent: AgentDep, lifecycle: LifecycleDep
) -> SessionCreatedResponse:
    live_session = await lifecycle.decline(session_id, agent)
    return SessionCreatedResponse(
        session_id=live_session.id,
        status=SessionStatus(live_session.status),
    )


@router.post("/session/{session_id}/rate", response_model=RatingResponse)
async def rate_session(
    session_id: int,
    body: RateSessionRequest,
    actor: ActorDep,
    lifecycle: LifecycleDep,
) -> RatingResponse:
    live_session = await lifecycle.rate(session_id, actor, body.stars, body.comment)
    return RatingResponse(session_id=live_session.id, stars=live_session.rating_stars or 0)


@router.get("/session/{session_id}/export", response_model=SessionExport)
async def export_session(
    session_id: int, agent: AgentDep, lifecycle: LifecycleDep
) -> SessionExport:
    """Session summary with its complete transcript."""
    return await lifecycle.export(session_id, agent)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    agent: AgentDep,
    lifecycle: LifecycleDep,
    status: str | None = Query(default=None),
    agent_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
) -> SessionListResponse:
    """Agent console listing; defaults to every open session."""
    wanted = _parse_status(status)
    sessions = await lifecycle.list_by_status(
        [wanted] if wanted else None, agent_id=agent_id, limit=limit
    )
    summaries = [await lifecycle.summary(s, agent) for s in sessions]
    return SessionListResponse(sessions=summaries, total=len(summaries))


# --- Messages ---


@router.post("/message", response_model=MessageCreatedResponse)
async def send_message(
    body: SendMessageRequest,
    actor: ActorDep,
    message_log: MessageLogDep,
    db_session: DbSessionDep,
    background_tasks: BackgroundTasks,
) -> MessageCreatedResponse:
    """Append a message as the caller's role."""
    sender = Sender.AGENT if actor.is_agent else Sender.USER
    message = await message_log.append(
        body.session_id,
        sender,
        body.content,
        reply_to_id=body.reply_to,
        attachment=body.attachment.model_dump() if body.attachment else None,
        actor=actor,
    )
    if sender == Sender.USER:
        await db_session.commit()
        background_tasks.add_task(
            notify_new_message, session_id=message.session_id, seq=message.seq
        )
    return MessageCreatedResponse(message_id=message.seq)


@router.get(
    "/messages",
    response_model=PollResponse,
    responses={304: {"description": "Nothing changed since the given ETag"}},
)
async def poll_messages(
    actor: ActorDep,
    poll_service: PollServiceDep,
    session_id: int = Query(..., ge=1),
    after: int = Query(default=0, ge=0),
    wait: float = Query(default=0.0, ge=0),
    limit: int | None = Query(default=None, ge=1, le=500),
    if_none_match: str | None = Header(default=None),
) -> Response:
    """Messages newer than ``after``; may be held open for up to ``wait`` seconds."""
    result = await poll_service.poll(
        session_id,
        actor,
        after=after,
        wait=wait,
        limit=limit,
        if_none_match=if_none_match,
    )
    if result.not_modified:
        return Response(status_code=304, headers={"ETag": result.etag})
    return JSONResponse(
        content=result.response.model_dump(mode="json", by_alias=True),
        headers={"ETag": result.etag},
    )


@router.post("/messages/read", response_model=MarkReadResponse)
async def mark_read(
    body: MarkReadRequest,
    actor: ActorDep,
    lifecycle: LifecycleDep,
    message_log: MessageLogDep,
) -> MarkReadResponse:
    live_session = await lifecycle.get(body.session_id)
    ensure_participant(live_session, actor)
    count = await message_log.mark_read(body.session_id, actor.role)
    return MarkReadResponse(marked_count=count)


@router.post("/typing", response_model=EmptyResponse)
async def set_typing(
    body: TypingRequest,
    actor: ActorDep,
    lifecycle: LifecycleDep,
    typing: TypingServiceDep,
) -> EmptyResponse:
    live_session = await lifecycle.get(body.session_id)
    ensure_participant(live_session, actor)
    await typing.set_typing(body.session_id, actor.role, body.is_typing)
    return EmptyResponse()


# --- Agents ---


@router.get("/agents/online", response_model=AgentsOnlineResponse)
async def agents_online(
    lifecycle: LifecycleDep, presence: PresenceServiceDep
) -> AgentsOnlineResponse:
    """How many agents are around and how long visitors wait for one."""
    return AgentsOnlineResponse(
        agents_online=await presence.online_count(),
        average_wait_time=await lifecycle.average_wait_seconds(),
    )

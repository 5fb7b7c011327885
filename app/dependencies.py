"""Global dependencies for the application."""

from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends, Request
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_async_session
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.redis import get_redis
from app.repositories.live_chat_repo import LiveChatRepository
from app.schemas.auth_schema import Actor
from app.services.assistant_service import AssistantService
from app.services.message_log import MessageLogService
from app.services.poll_service import PollService
from app.services.presence_service import PresenceService
from app.services.session_lifecycle import SessionLifecycleService
from app.services.typing_service import TypingService


@lru_cache
def get_llm() -> BaseChatModel:
    """Get the LLM instance based on the configured provider."""
    llm_config = settings.llm
    match llm_config.provider:
        case "openai":
            return ChatOpenAI(
                model=llm_config.openai_model,
                api_key=llm_config.openai_api_key,
            )
        case "anthropic":
            return ChatAnthropic(  # type: ignore[call-arg]
                model_name=llm_config.anthropic_model,
                api_key=llm_config.anthropic_api_key,
            )
        case _:
            raise ValueError(f"Unsupported LLM provider: {llm_config.provider}")


# --- Caller identity ---


def get_current_actor(request: Request) -> Actor:
    """Extract the verified caller from middleware-populated state."""
    state = getattr(request, "state", None)
    user_id = getattr(state, "user_id", None) if state else None
    if user_id is None:
        raise AuthenticationError(message="Not authenticated")
    return Actor(
        id=state.user_id,
        role=state.role,
        name=state.name,
        email=state.email,
    )


def require_role(*allowed_roles: str) -> Callable[..., Actor]:
    """Dependency factory that enforces role-based access control."""

    def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise AuthorizationError(message=f"Role '{actor.role}' is not permitted")
        return actor

    return _check


# --- Live chat ---


def get_live_chat_repository(
    session: AsyncSession = Depends(get_async_session),
) -> LiveChatRepository:
    """Get LiveChatRepository bound to the current session."""
    return LiveChatRepository(session)


def get_message_log_service(
    repo: LiveChatRepository = Depends(get_live_chat_repository),
) -> MessageLogService:
    return MessageLogService(repo)


def get_session_lifecycle_service(
    repo: LiveChatRepository = Depends(get_live_chat_repository),
    message_log: MessageLogService = Depends(get_message_log_service),
) -> SessionLifecycleService:
    return SessionLifecycleService(repo, message_log)


def get_typing_service() -> TypingService:
    """Get TypingService backed by the active Redis client."""
    return TypingService(get_redis())


def get_presence_service() -> PresenceService:
    return PresenceService(get_redis())


async def track_agent_presence(
    actor: Actor = Depends(get_current_actor),
    presence: PresenceService = Depends(get_presence_service),
) -> Actor:
    """Refresh the caller's last-seen mark when it is an agent."""
    if actor.is_agent:
        await presence.mark_seen(actor.id)
    return actor


def get_poll_service(
    repo: LiveChatRepository = Depends(get_live_chat_repository),
    message_log: MessageLogService = Depends(get_message_log_service),
    typing: TypingService = Depends(get_typing_service),
) -> PollService:
    return PollService(repo, message_log, typing)


def get_assistant_service() -> AssistantService:
    return AssistantService(llm=get_llm())

"""Typing indicator flags stored in Redis with a short TTL."""

import redis.asyncio as redis

from app.core.config import settings

TYPING_PREFIX = "typing:"


class TypingService:
    """Per-session, per-role typing flags that expire on their own."""

    def __init__(
        self,
        redis_client: redis.Redis,  # type: ignore[type-arg]
        ttl_seconds: int | None = None,
    ) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds or settings.live_agent.typing_ttl_seconds
        self._prefix = f"{settings.redis.key_prefix}{TYPING_PREFIX}"

    def _key(self, session_id: int, role: str) -> str:
        return f"{self._prefix}{session_id}:{role}"

    async def set_typing(self, session_id: int, role: str, is_typing: bool) -> None:
        """Raise or clear the caller's flag."""
        key = self._key(session_id, role)
        if is_typing:
            await self._redis.set(key, "1", ex=self._ttl)
        else:
            await self._redis.delete(key)

    async def flags(self, session_id: int) -> tuple[bool, bool]:
        """Return (agent_typing, user_typing)."""
        agent, user = await self._redis.mget(
            self._key(session_id, "agent"), self._key(session_id, "user")
        )
        return agent is not None, user is not None

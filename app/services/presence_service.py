"""Agent presence tracked as expiring Redis keys."""

import redis.asyncio as redis

from app.core.config import settings

PRESENCE_PREFIX = "presence:agent:"


class PresenceService:
    """An agent counts as online while its last-seen key is alive."""

    def __init__(
        self,
        redis_client: redis.Redis,  # type: ignore[type-arg]
        window_seconds: int | None = None,
    ) -> None:
        self._redis = redis_client
        self._window = window_seconds or settings.live_agent.presence_window_seconds
        self._prefix = f"{settings.redis.key_prefix}{PRESENCE_PREFIX}"

    async def mark_seen(self, agent_id: str) -> None:
        await self._redis.set(f"{self._prefix}{agent_id}", "1", ex=self._window)

    async def online_count(self) -> int:
        """Number of agents seen within the window."""
        count = 0
        async for _ in self._redis.scan_iter(match=f"{self._prefix}*"):
            count += 1
        return count

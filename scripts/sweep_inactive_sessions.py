"""Close live sessions that have been idle past the inactivity timeout.

Meant to be run from cron (the service itself never schedules it).

Usage:
    python -m scripts.sweep_inactive_sessions
    python -m scripts.sweep_inactive_sessions --minutes 45
"""

import argparse
import asyncio
from datetime import timedelta

import structlog

from app.core.database import async_session_factory, engine
from app.repositories.live_chat_repo import LiveChatRepository
from app.services.message_log import MessageLogService
from app.services.session_lifecycle import SessionLifecycleService

logger = structlog.get_logger()


async def sweep(minutes: int | None) -> int:
    """Run one sweep in its own transaction and return how many sessions closed."""
    threshold = timedelta(minutes=minutes) if minutes else None
    async with async_session_factory() as session:
        repo = LiveChatRepository(session)
        lifecycle = SessionLifecycleService(repo, MessageLogService(repo))
        try:
            closed = await lifecycle.timeout_sweep(threshold)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Inactive session sweep failed")
            raise
    await engine.dispose()
    return closed


def main() -> None:
    parser = argparse.ArgumentParser(description="Close inactive live sessions")
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help="Inactivity threshold (defaults to LIVE_INACTIVITY_TIMEOUT_MINUTES)",
    )
    args = parser.parse_args()

    closed = asyncio.run(sweep(args.minutes))
    print(f"Closed {closed} inactive session(s)")


if __name__ == "__main__":
    main()

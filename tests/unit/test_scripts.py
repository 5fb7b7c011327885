"""Tests for the operational scripts."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.live_session import CloseReason, SessionStatus
from app.repositories.live_chat_repo import LiveChatRepository
from app.services.token_service import TokenService
from scripts import issue_token, sweep_inactive_sessions


class TestSweepScript:
    async def test_closes_idle_sessions(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        long_ago = datetime.now(UTC) - timedelta(hours=2)
        async with session_factory() as session:
            repo = LiveChatRepository(session)
            idle = await repo.create_session(
                status=SessionStatus.ACTIVE,
                user_id="user-1",
                started_at=long_ago,
                last_activity_at=long_ago,
            )
            await session.commit()
            idle_id = idle.id

        monkeypatch.setattr(sweep_inactive_sessions, "async_session_factory", session_factory)

        assert await sweep_inactive_sessions.sweep(minutes=30) == 1

        async with session_factory() as session:
            closed = await LiveChatRepository(session).find_session(idle_id)
        assert closed is not None
        assert closed.status == SessionStatus.CLOSED
        assert closed.close_reason == CloseReason.TIMEOUT


class TestIssueTokenScript:
    def test_agent_token(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(
            "sys.argv",
            ["issue_token", "--subject", "agent-7", "--role", "agent", "--name", "Sam"],
        )
        issue_token.main()

        payload = TokenService().decode_token(capsys.readouterr().out.strip())
        assert payload.sub == "agent-7"
        assert payload.role == "agent"
        assert payload.name == "Sam"

    def test_guest_token(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr("sys.argv", ["issue_token", "--guest"])
        issue_token.main()

        payload = TokenService().decode_token(capsys.readouterr().out.strip())
        assert payload.sub.startswith("guest:")
        assert payload.name == "Guest"

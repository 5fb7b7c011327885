"""Integration tests for the live chat router."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.repositories.live_chat_repo import LiveChatRepository
from tests.conftest import make_agent_headers, make_token_headers

LIVE = "/api/v1/live"


async def _open_session(client: AsyncClient) -> int:
    resp = await client.post(
        f"{LIVE}/session",
        json={"userMeta": {"name": "Ada", "email": "ada@test.com"}, "pageUrl": "/pricing"},
    )
    assert resp.status_code == 201
    return resp.json()["sessionId"]


class TestCreateSession:
    async def test_create_returns_pending(self, user_client: AsyncClient) -> None:
        resp = await user_client.post(f"{LIVE}/session", json={})
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "pending"
        assert data["sessionId"] >= 1

    async def test_open_session_is_reused(self, user_client: AsyncClient) -> None:
        first = await _open_session(user_client)
        second = await _open_session(user_client)
        assert first == second

    async def test_agents_cannot_open_sessions(self, agent_client: AsyncClient) -> None:
        resp = await agent_client.post(f"{LIVE}/session", json={})
        assert resp.status_code == 403
        assert resp.json()["code"] == "AUTHORIZATION_ERROR"

    async def test_mine_returns_summary(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)

        resp = await user_client.get(f"{LIVE}/session/mine")

        session = resp.json()["session"]
        assert session["sessionId"] == session_id
        assert session["userName"] == "Ada"
        assert session["pageUrl"] == "/pricing"
        assert session["unreadCount"] == 0

    async def test_rate_limited(self, user_client: AsyncClient) -> None:
        statuses = [
            (await user_client.post(f"{LIVE}/session", json={})).status_code
            for _ in range(10)
        ]
        assert statuses[0] == 201
        assert 429 in statuses

    async def test_responses_are_not_cacheable(self, user_client: AsyncClient) -> None:
        resp = await user_client.post(f"{LIVE}/session", json={})
        assert "no-store" in resp.headers["cache-control"]
        assert resp.headers["pragma"] == "no-cache"


class TestConversation:
    async def test_end_to_end(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)

        resp = await user_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "Hello?"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"messageId": 1}

        resp = await agent_client.post(f"{LIVE}/session/{session_id}/accept")
        assert resp.json()["status"] == "active"

        resp = await agent_client.post(
            f"{LIVE}/message",
            json={"sessionId": session_id, "content": "Hi Ada", "replyTo": 1},
        )
        assert resp.json() == {"messageId": 2}

        resp = await user_client.get(
            f"{LIVE}/messages", params={"session_id": session_id, "after": 1}
        )
        data = resp.json()
        assert data["status"] == "active"
        assert data["lastId"] == 2
        assert [m["id"] for m in data["messages"]] == [2]
        assert data["messages"][0]["sender"] == "agent"
        assert data["messages"][0]["replyTo"] == 1

        resp = await user_client.post(f"{LIVE}/messages/read", json={"sessionId": session_id})
        assert resp.json() == {"markedCount": 1}

        resp = await user_client.post(f"{LIVE}/session/{session_id}/close")
        assert resp.status_code == 200
        assert resp.json() == {}

        resp = await agent_client.get(
            f"{LIVE}/messages", params={"session_id": session_id, "after": 2}
        )
        data = resp.json()
        assert data["status"] == "closed"
        assert data["messages"][0]["sender"] == "system"

    async def test_full_history_replay(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        for text in ("one", "two", "three"):
            await user_client.post(
                f"{LIVE}/message", json={"sessionId": session_id, "content": text}
            )

        resp = await user_client.get(
            f"{LIVE}/messages", params={"session_id": session_id, "after": 0}
        )

        data = resp.json()
        assert [m["content"] for m in data["messages"]] == ["one", "two", "three"]
        assert [m["id"] for m in data["messages"]] == [1, 2, 3]

    async def test_paging_sets_has_more(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        for text in ("one", "two", "three"):
            await user_client.post(
                f"{LIVE}/message", json={"sessionId": session_id, "content": text}
            )

        resp = await user_client.get(
            f"{LIVE}/messages", params={"session_id": session_id, "after": 1, "limit": 1}
        )

        data = resp.json()
        assert [m["id"] for m in data["messages"]] == [2]
        assert data["hasMore"] is True

    async def test_not_modified(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        await user_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "hi"}
        )
        params = {"session_id": session_id, "after": 1}

        first = await user_client.get(f"{LIVE}/messages", params=params)
        etag = first.headers["etag"]
        assert etag.startswith('W/"')

        second = await user_client.get(
            f"{LIVE}/messages", params=params, headers={"If-None-Match": etag}
        )
        assert second.status_code == 304
        assert second.headers["etag"] == etag

    async def test_typing_flag_reaches_other_side(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)

        resp = await user_client.post(
            f"{LIVE}/typing", json={"sessionId": session_id, "isTyping": True}
        )
        assert resp.status_code == 200

        resp = await agent_client.get(f"{LIVE}/messages", params={"session_id": session_id})
        data = resp.json()
        assert data["userTyping"] is True
        assert data["agentTyping"] is False

    async def test_rating_is_clamped(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        await user_client.post(f"{LIVE}/session/{session_id}/close")

        resp = await user_client.post(f"{LIVE}/session/{session_id}/rate", json={"stars": 9})

        assert resp.json() == {"sessionId": session_id, "stars": 5}


class TestNotificationHandoff:
    async def test_created_session_is_visible_to_next_request(
        self, user_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)

        resp = await user_client.get(f"{LIVE}/session/{session_id}")

        assert resp.status_code == 200
        assert resp.json()["session"]["sessionId"] == session_id

    async def test_new_session_task_sees_committed_row(
        self,
        user_client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        seen: list[str | None] = []

        async def record(session_id: int) -> None:
            async with session_factory() as session:
                live_session = await LiveChatRepository(session).find_session(session_id)
                seen.append(live_session.user_name if live_session else None)

        monkeypatch.setattr("app.api.v1.live_router.notify_new_session", record)

        await _open_session(user_client)

        assert seen == ["Ada"]

    async def test_new_message_task_sees_committed_row(
        self,
        user_client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        session_id = await _open_session(user_client)
        seen: list[int] = []

        async def record(session_id: int, seq: int) -> None:
            async with session_factory() as session:
                messages = await LiveChatRepository(session).find_messages_after(
                    session_id, seq - 1, 10
                )
                seen.extend(m.seq for m in messages)

        monkeypatch.setattr("app.api.v1.live_router.notify_new_message", record)

        await user_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "Hello?"}
        )
        resp = await user_client.get(f"{LIVE}/messages", params={"session_id": session_id})

        assert seen == [1]
        assert [m["id"] for m in resp.json()["messages"]] == [1]


class TestErrors:
    async def test_unknown_session(self, user_client: AsyncClient) -> None:
        resp = await user_client.get(f"{LIVE}/messages", params={"session_id": 999})
        assert resp.status_code == 404
        assert resp.json()["code"] == "SESSION_NOT_FOUND"

    async def test_empty_message(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        resp = await user_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "   "}
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_MESSAGE"

    async def test_send_after_close(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        await user_client.post(f"{LIVE}/session/{session_id}/close")

        resp = await user_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "still there?"}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "SESSION_CLOSED"

    async def test_close_is_idempotent(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        first = await user_client.post(f"{LIVE}/session/{session_id}/close")
        second = await user_client.post(f"{LIVE}/session/{session_id}/close")
        assert first.status_code == second.status_code == 200

    async def test_other_user_is_rejected(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        resp = await user_client.get(
            f"{LIVE}/messages",
            params={"session_id": session_id},
            headers=make_token_headers(user_id="user-2"),
        )
        assert resp.status_code == 403

    async def test_malformed_body(self, user_client: AsyncClient) -> None:
        resp = await user_client.post(f"{LIVE}/message", json={"content": "no session"})
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"


class TestAgentConsole:
    async def test_list_open_sessions(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)

        resp = await agent_client.get(f"{LIVE}/sessions")

        data = resp.json()
        assert data["total"] == 1
        assert data["sessions"][0]["sessionId"] == session_id
        assert data["sessions"][0]["status"] == "pending"

    async def test_legacy_status_filter(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)
        await agent_client.post(f"{LIVE}/session/{session_id}/accept")

        resp = await agent_client.get(f"{LIVE}/sessions", params={"status": "accepted"})

        assert [s["sessionId"] for s in resp.json()["sessions"]] == [session_id]

    async def test_unknown_status_filter(self, agent_client: AsyncClient) -> None:
        resp = await agent_client.get(f"{LIVE}/sessions", params={"status": "archived"})
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"

    async def test_users_cannot_list(self, user_client: AsyncClient) -> None:
        resp = await user_client.get(f"{LIVE}/sessions")
        assert resp.status_code == 403

    async def test_decline(self, user_client: AsyncClient, agent_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)

        resp = await agent_client.post(f"{LIVE}/session/{session_id}/decline")
        assert resp.json()["status"] == "closed"

        resp = await user_client.get(f"{LIVE}/session/{session_id}")
        assert resp.json()["session"]["closeReason"] == "declined"

    async def test_second_agent_cannot_accept(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)
        await agent_client.post(f"{LIVE}/session/{session_id}/accept")

        resp = await agent_client.post(
            f"{LIVE}/session/{session_id}/accept",
            headers=make_agent_headers("agent-2"),
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "INVALID_TRANSITION"

    async def test_agent_reply_claims_session(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)

        await agent_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "I can help"}
        )

        resp = await agent_client.get(f"{LIVE}/session/{session_id}")
        session = resp.json()["session"]
        assert session["status"] == "active"
        assert session["agentId"] == "agent-1"

    async def test_export_returns_transcript(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)
        await user_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "Hello?"}
        )
        await agent_client.post(
            f"{LIVE}/message", json={"sessionId": session_id, "content": "Hi Ada"}
        )

        resp = await agent_client.get(f"{LIVE}/session/{session_id}/export")

        assert resp.status_code == 200
        data = resp.json()
        assert data["session"]["sessionId"] == session_id
        assert [m["id"] for m in data["messages"]] == [1, 2]
        assert data["messages"][1]["sender"] == "agent"
        assert "exportedAt" in data

    async def test_users_cannot_export(self, user_client: AsyncClient) -> None:
        session_id = await _open_session(user_client)
        resp = await user_client.get(f"{LIVE}/session/{session_id}/export")
        assert resp.status_code == 403


class TestAgentsOnline:
    async def test_defaults_with_no_agents(self, user_client: AsyncClient) -> None:
        resp = await user_client.get(f"{LIVE}/agents/online")

        assert resp.status_code == 200
        assert resp.json() == {"agentsOnline": 0, "averageWaitTime": 60}

    async def test_agent_activity_marks_presence(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        await agent_client.get(f"{LIVE}/sessions")
        await agent_client.get(
            f"{LIVE}/sessions", headers=make_agent_headers("agent-2")
        )
        await user_client.get(f"{LIVE}/session/mine")

        resp = await user_client.get(f"{LIVE}/agents/online")

        assert resp.json()["agentsOnline"] == 2

    async def test_accepted_session_feeds_wait_time(
        self, user_client: AsyncClient, agent_client: AsyncClient
    ) -> None:
        session_id = await _open_session(user_client)
        await agent_client.post(f"{LIVE}/session/{session_id}/accept")

        resp = await user_client.get(f"{LIVE}/agents/online")

        # Accepted within the same second.
        assert resp.json()["averageWaitTime"] < 60

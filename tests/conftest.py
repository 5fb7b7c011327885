"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; required values must exist first.
os.environ.setdefault("CHAT_TOKEN_SECRET", "test-secret-key-for-chat-tokens-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("NOTIFY_EMAIL_ENABLED", "false")

from collections.abc import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from langchain_core.language_models import BaseChatModel  # noqa: E402
from langchain_core.messages import AIMessage  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.database import Base  # noqa: E402
from app.models.live_message import LiveMessage  # noqa: E402, F401
from app.models.live_session import LiveSession  # noqa: E402, F401
from app.services.token_service import TokenService  # noqa: E402

# --- Test DB (SQLite in-memory) ---

test_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session."""
    async with test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest.fixture(autouse=True)
def patch_background_sessions(monkeypatch: pytest.MonkeyPatch) -> None:
    """Background notification tasks open their own sessions on the test DB."""
    monkeypatch.setattr(
        "app.services.notification_service.async_session_factory",
        test_session_factory,
    )


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """Each test starts with an empty rate limit window."""
    from app.core.limiter import limiter

    limiter.reset()


# --- Test Redis (fakeredis) ---


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Create a fresh fake Redis client."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def patch_redis(
    fake_redis: fakeredis.aioredis.FakeRedis, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Patch the global redis_client used by get_redis() and /health."""
    monkeypatch.setattr("app.core.redis.redis_client", fake_redis)


# --- Token helpers ---


@pytest.fixture
def token_service() -> TokenService:
    return TokenService()


def make_token_headers(
    user_id: str = "user-1",
    role: str = "user",
    name: str = "Test User",
    email: str = "user@test.com",
) -> dict[str, str]:
    """Generate X-Chat-Token headers with a valid host token."""
    token = TokenService().issue_token(
        subject=user_id, role=role, name=name, email=email  # type: ignore[arg-type]
    )
    return {"X-Chat-Token": token}


def make_agent_headers(agent_id: str = "agent-1") -> dict[str, str]:
    return make_token_headers(
        user_id=agent_id, role="agent", name="Agent", email=f"{agent_id}@support.test"
    )


# --- App override & client fixtures ---


def _get_app():  # type: ignore[no-untyped-def]
    """Import app lazily and apply overrides."""
    from app.core.database import get_async_session
    from app.main import app

    app.dependency_overrides[get_async_session] = override_get_async_session
    return app


@pytest.fixture
def asgi_app():  # type: ignore[no-untyped-def]
    """The application wired to the test database."""
    return _get_app()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client without a chat token."""
    application = _get_app()
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def user_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client carrying a visitor token."""
    application = _get_app()
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=make_token_headers()
    ) as ac:
        yield ac


@pytest.fixture
async def agent_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client carrying an agent token."""
    application = _get_app()
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=make_agent_headers()
    ) as ac:
        yield ac


# --- DB session for tests ---


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database, for code that opens its own sessions."""
    return test_session_factory


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a raw async session for repository and service tests."""
    async with test_session_factory() as session:
        yield session


# --- Mock LLM ---


@pytest.fixture
def mock_llm() -> MagicMock:
    """Create a mock LLM for testing."""
    mock = MagicMock(spec=BaseChatModel)
    mock.ainvoke = AsyncMock(return_value=AIMessage(content="Test response"))
    return mock

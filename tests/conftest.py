"""Pytest fixtures for testing."""
import os

# Must be set before any app imports that trigger Settings validation
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SESSION_COOKIE_SECURE"] = "true"
os.environ["RESEND_API_KEY"] = ""
# Cheap Argon2 parameters keep the suite fast; production defaults are tested in core/
os.environ["PASSWORD_HASH_TIME_COST"] = "1"
os.environ["PASSWORD_HASH_MEMORY_COST"] = "1024"

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from models.base import Base

TEST_PASSWORD = "hunter22"
PUBLIC_IP = "93.184.216.34"


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """
    Create a file-backed SQLite engine with a fresh schema for each test.

    Each session gets its own connection, so request transactions commit
    and roll back exactly as they would against a real server.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:  # noqa: ANN001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session for direct service calls and assertions.

    API tests that write through it must commit before calling the API.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
async def app(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[Any]:
    """The FastAPI app with its database dependency pointed at the test engine."""
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app as fastapi_app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_async_session] = override_get_async_session
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def make_client(app: Any) -> AsyncGenerator[Callable[[], Awaitable[AsyncClient]]]:
    """
    Factory for independent browser-like clients, each with its own cookie jar.

    base_url is https so the Secure session cookie is sent back.
    """
    clients: list[AsyncClient] = []

    async def _make() -> AsyncClient:
        test_client = AsyncClient(transport=ASGITransport(app=app), base_url="https://test")
        await test_client.__aenter__()
        clients.append(test_client)
        return test_client

    yield _make

    for test_client in clients:
        await test_client.__aexit__(None, None, None)


@pytest.fixture
async def client(make_client: Callable[[], Awaitable[AsyncClient]]) -> AsyncClient:
    """A fresh anonymous client."""
    return await make_client()


async def _fetch_csrf(test_client: AsyncClient) -> str:
    response = await test_client.get("/csrf-token")
    assert response.status_code == 200
    token = response.json()["csrfToken"]
    test_client.headers["X-CSRF-Token"] = token
    return token


@pytest.fixture
def fetch_csrf() -> Callable[[AsyncClient], Awaitable[str]]:
    """Get the client's CSRF token and attach it to all of its later requests."""
    return _fetch_csrf


@pytest.fixture
def register_user() -> Callable[..., Awaitable[dict]]:
    """Register (and thereby log in) a user on the given client; returns the user view."""

    async def _register(
        test_client: AsyncClient,
        username: str,
        email: str | None = None,
        password: str = TEST_PASSWORD,
    ) -> dict:
        if "X-CSRF-Token" not in test_client.headers:
            await _fetch_csrf(test_client)
        response = await test_client.post(
            "/auth/register",
            json={
                "username": username,
                "email": email or f"{username}@example.com",
                "password": password,
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
async def alice_client(
    make_client: Callable[[], Awaitable[AsyncClient]],
    register_user: Callable[..., Awaitable[dict]],
) -> AsyncClient:
    """A client logged in as a freshly registered user 'alice'."""
    test_client = await make_client()
    await register_user(test_client, "alice", "alice@x.com")
    return test_client


@pytest.fixture
async def bob_client(
    make_client: Callable[[], Awaitable[AsyncClient]],
    register_user: Callable[..., Awaitable[dict]],
) -> AsyncClient:
    """A client logged in as a second user 'bob'."""
    test_client = await make_client()
    await register_user(test_client, "bob", "bob@x.com")
    return test_client

"""
Pytest configuration and shared fixtures for WorkPulse tests.

- Async tests run under pytest-asyncio (auto mode, see pyproject.toml)
- Every test gets its own in-memory SQLite database
- HTTP routes are exercised through httpx.AsyncClient on the ASGI app
"""

import os

# Must be set before workpulse.config is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["VAPID_PRIVATE_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret"

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import workpulse.models  # noqa: F401
from workpulse.database import Base, get_db
from workpulse.main import create_app
from workpulse.routers.auth import create_access_token


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(session_factory, monkeypatch):
    """Application wired to the per-test database."""

    async def _no_tables():
        return None

    monkeypatch.setattr("workpulse.main.create_tables", _no_tables)
    application = create_app()

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = _get_db
    return application


@pytest.fixture
async def client(app):
    """httpx client with the app lifespan running (registry, rooms, broker)."""
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac


def auth_headers(user_id: str, role: str = "member") -> dict:
    token = create_access_token({"id": user_id, "email": f"{user_id}@example.com", "role": role})
    return {"Authorization": f"Bearer {token}"}


class FakeChannel:
    """Channel stand-in that records every event it is sent."""

    def __init__(self, name: str = "channel"):
        self.name = name
        self.events = []

    def send(self, event):
        self.events.append(event)
        return True

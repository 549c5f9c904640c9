"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

# Tests run against a private in-memory database, never the configured one
os.environ["SELAH_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SELAH_SEED_ON_STARTUP"] = "false"
os.environ["SELAH_LOG_FORMAT"] = "console"

from selah.config import get_settings  # noqa: E402
from selah.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from selah.db.base import Base  # noqa: E402
from selah.db.models import UserAchievement, XPEvent  # noqa: E402
from selah.main import create_app  # noqa: E402
from selah.progression.seed import seed_achievements  # noqa: E402

USER_ID = "user-6f1c2a"


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema and a direct session for the duration of one test."""
    get_settings.cache_clear()
    settings = get_settings()
    await init_db(settings.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_session_factory()() as session:
        yield session

    await close_db()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """Session with the achievement catalog seeded and committed."""
    await seed_achievements(db_session)
    return db_session


@pytest_asyncio.fixture
async def client(seeded_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a seeded in-memory database.

    ASGITransport does not run the lifespan, so the database comes from
    the db_session fixture.
    """
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def count_xp_events(db: AsyncSession, user_id: str, event_type: str | None = None) -> int:
    """Number of ledger rows for a user, optionally of one event type."""
    stmt = select(func.count()).select_from(XPEvent).where(XPEvent.user_id == user_id)
    if event_type is not None:
        stmt = stmt.where(XPEvent.event_type == event_type)
    return (await db.execute(stmt)).scalar_one()


async def count_user_achievements(db: AsyncSession, user_id: str) -> int:
    stmt = select(func.count()).select_from(UserAchievement).where(UserAchievement.user_id == user_id)
    return (await db.execute(stmt)).scalar_one()

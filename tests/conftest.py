"""Shared test fixtures for the family hub backend."""

import os

# Settings are read at import time; point the app at SQLite before hub is imported
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hub import models
from hub.db import get_session


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def members(session):
    """Ivan, Marnie, John and Ann, inserted in that order (ids 1..4)."""
    family = [
        models.FamilyMember(name="Ivan", role="parent"),
        models.FamilyMember(name="Marnie", role="child"),
        models.FamilyMember(name="John", role="parent"),
        models.FamilyMember(name="Ann", role="child"),
    ]
    session.add_all(family)
    await session.commit()
    return {member.name: member for member in family}


@pytest_asyncio.fixture
async def client(session_maker, members):
    """API client bound to the test database."""
    from hub.api import app

    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


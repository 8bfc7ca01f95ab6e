"""SQLAlchemy 2.x async database setup.

This module defines the async engine and session factory but does not
hard-code any connection credentials.
"""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings


def _engine_options() -> dict:
    # SQLite (tests, local dev) does not accept pool sizing arguments
    if settings.db.url.startswith("sqlite"):
        return {"echo": settings.db.echo}
    return {
        "echo": settings.db.echo,
        "pool_size": settings.db.pool_size,
        "max_overflow": settings.db.max_overflow,
    }


engine: AsyncEngine = create_async_engine(settings.db.url, future=True, **_engine_options())

AsyncSessionMaker = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI-friendly async session dependency.

    Usage:
        async def endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """

    async with AsyncSessionMaker() as session:
        yield session

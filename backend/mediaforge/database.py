from __future__ import annotations
"""SQLAlchemy 2.0 async database engine and session management.

The default URL is a local SQLite file (aiosqlite driver); any async
SQLAlchemy URL works, e.g. ``mysql+asyncmy://`` in production.
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from mediaforge.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool tuning only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_recycle=3600,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session_factory = build_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables defined by Base metadata.

    Called once at application startup (and by tests against a temp DB).
    """
    import mediaforge.models  # noqa: F401  registers models on Base.metadata

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db() -> None:
    """Dispose of the engine connection pool.

    Called at application shutdown.
    """
    await engine.dispose()

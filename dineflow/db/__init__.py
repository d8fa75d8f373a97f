"""Engine and session helpers.

The DSN is read from :class:`~dineflow.config.Settings.database_url`, e.g.::

    postgresql+asyncpg://u:p@host:5432/restaurant
    sqlite+aiosqlite:///./dineflow.db

Use :func:`get_engine` to create an :class:`~sqlalchemy.ext.asyncio.AsyncEngine`
and :func:`get_session` to obtain a session bound to it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import get_settings
from ..models import Base
from ..obs import add_query_logger

logger = logging.getLogger(__name__)


def get_engine(dsn: str | None = None, **kwargs) -> AsyncEngine:
    """Create and return an :class:`AsyncEngine` for ``dsn``.

    Falls back to the configured ``database_url`` and attaches the slow query
    logger to the new engine.
    """
    settings = get_settings()
    engine = create_async_engine(dsn or settings.database_url, **kwargs)
    add_query_logger(engine, slow_ms=settings.slow_query_ms)
    return engine


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables known to :data:`dineflow.models.Base`."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("schema ready on %s", engine.url.render_as_string(hide_password=True))


@asynccontextmanager
async def get_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Yield an :class:`AsyncSession` bound to ``engine``."""

    Session = session_factory(engine)
    session = Session()
    try:
        yield session
    finally:
        await session.close()


__all__ = ["get_engine", "session_factory", "create_schema", "get_session"]

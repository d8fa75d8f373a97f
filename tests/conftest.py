"""Shared fixtures: a fresh SQLite database and an engine on a fixed clock."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dineflow import Engine
from dineflow.clock import FixedClock
from dineflow.events import EventBus
from dineflow.models import Base
from dineflow.utils.locks import KeyedLocks

# Saturday lunchtime; scenarios book the same evening.
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dineflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as sess:
        yield sess


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def app(clock, bus):
    return Engine(clock=clock, bus=bus, locks=KeyedLocks())

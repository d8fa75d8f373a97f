import json
import logging

import pytest
from sqlalchemy import text

from dineflow.config import get_settings
from dineflow.db import create_schema, get_engine, get_session
from dineflow.errors import Conflict, LockTimeout
from dineflow.obs.context import request_id_ctx
from dineflow.obs.logging import JsonFormatter, RequestIdFilter, configure_logging
from dineflow.utils.locks import KeyedLocks


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_environment_overrides_json(monkeypatch, fresh_settings):
    assert get_settings().default_duration_mins == 60
    get_settings.cache_clear()
    monkeypatch.setenv("DEFAULT_DURATION_MINS", "90")
    monkeypatch.setenv("CURRENCY", "eur")
    settings = get_settings()
    assert settings.default_duration_mins == 90
    assert settings.currency == "eur"
    assert get_settings() is settings


def test_json_formatter_redacts_and_carries_context():
    record = logging.LogRecord(
        "dineflow.test", logging.INFO, __file__, 1,
        "reservation for %s at +15551234567", ("ana@example.com",), None,
    )
    record.reservation_id = "r-1"
    token = request_id_ctx.set("req-42")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx.reset(token)
    data = json.loads(JsonFormatter().format(record))
    assert data["msg"] == "reservation for *** at ***"
    assert data["req_id"] == "req-42"
    assert data["reservation_id"] == "r-1"
    assert data["level"] == "INFO"


@pytest.mark.anyio
async def test_slow_queries_are_logged(tmp_path, caplog, monkeypatch, fresh_settings):
    monkeypatch.setenv("SLOW_QUERY_MS", "-1")
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'q.db'}")
    try:
        await create_schema(engine)
        with caplog.at_level(logging.WARNING, logger="obs"):
            async with get_session(engine) as session:
                await session.execute(text("SELECT 1"))
    finally:
        await engine.dispose()
    assert "slow query" in caplog.text


@pytest.mark.anyio
async def test_lock_wait_times_out():
    locks = KeyedLocks()
    async with locks.hold("table:1"):
        with pytest.raises(LockTimeout) as exc_info:
            async with locks.hold("table:1", timeout=0.01):
                pass
    assert isinstance(exc_info.value, Conflict)
    assert exc_info.value.to_envelope()["error"]["code"] == "BUSY"
    async with locks.hold("table:1", timeout=0.01):
        pass


def test_configure_logging_installs_one_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(level="DEBUG", json_output=True)
        configure_logging(level="DEBUG", json_output=True)
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

"""Statement timing for the engine's SQL traffic."""

from __future__ import annotations

import hashlib
import logging
import random
import time

from sqlalchemy import event
from sqlalchemy.engine import Engine

logger = logging.getLogger("obs")

MAX_SQL_CHARS = 200


def _shorten(statement: str) -> str:
    sql = " ".join(statement.split())
    if len(sql) > MAX_SQL_CHARS:
        sql = sql[: MAX_SQL_CHARS - 3] + "..."
    return sql


def add_query_logger(engine: Engine, slow_ms: int = 200, sample_rate: float = 0.01) -> None:
    """Warn about statements slower than ``slow_ms``; sample the rest at DEBUG.

    Parameters are never logged, only a short digest, so customer data stays
    out of the log stream.
    """
    target = engine.sync_engine if hasattr(engine, "sync_engine") else engine

    @event.listens_for(target, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        conn.info.setdefault("dineflow_query_start", []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _finish(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        elapsed_ms = (time.perf_counter() - conn.info["dineflow_query_start"].pop()) * 1000
        verb = statement.lstrip().split(" ", 1)[0].upper()
        digest = hashlib.sha256(repr(parameters).encode()).hexdigest()[:8]
        if elapsed_ms > slow_ms:
            logger.warning(
                "slow query %dms %s sql=%s params=%s",
                int(elapsed_ms),
                verb,
                _shorten(statement),
                digest,
            )
        elif random.random() < sample_rate:
            logger.debug(
                "query %dms %s rows=%s params=%s",
                int(elapsed_ms),
                verb,
                cursor.rowcount,
                digest,
            )

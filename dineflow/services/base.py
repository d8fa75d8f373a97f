"""Shared plumbing for the engine services."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..clock import Clock, SystemClock
from ..config import Settings, get_settings
from ..errors import Conflict, DineflowError, StorageError
from ..events import EventBus, event_bus
from ..utils.locks import KeyedLocks, locks as default_locks

logger = logging.getLogger(__name__)

PendingEvents = List[Tuple[str, Dict[str, Any]]]


class Service:
    """Base class wiring the clock, event bus, locks and settings."""

    def __init__(
        self,
        clock: Clock | None = None,
        bus: EventBus | None = None,
        locks: KeyedLocks | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.timezone)
        self.bus = bus or event_bus
        self.locks = locks or default_locks

    def hold(self, key: str):
        """Hold the lock for ``key`` within the configured deadline."""
        return self.locks.hold(key, self.settings.lock_timeout_secs)

    @asynccontextmanager
    async def transaction(
        self, session: AsyncSession, operation: str
    ) -> AsyncIterator[PendingEvents]:
        """Commit the block as one unit and publish its events afterwards.

        Engine errors and storage failures roll the session back so nothing
        partial is persisted. Storage failures are not retried here.
        """

        pending: PendingEvents = []
        try:
            yield pending
            await session.commit()
        except DineflowError as exc:
            await session.rollback()
            logger.info(
                "%s rejected: %s", operation, exc.message, extra={"code": exc.code}
            )
            raise
        except IntegrityError as exc:
            await session.rollback()
            logger.info("%s hit a constraint: %s", operation, exc.orig)
            raise Conflict(
                f"{operation} violates a uniqueness or integrity constraint",
                details={"operation": operation},
            ) from exc
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error("%s failed in storage", operation, exc_info=exc)
            raise StorageError(
                f"{operation} aborted by a storage failure",
                details={"operation": operation, "error": type(exc).__name__},
            ) from exc

        for name, payload in pending:
            await self.bus.publish(name, payload)

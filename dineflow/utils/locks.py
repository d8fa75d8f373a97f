"""Keyed ``asyncio`` locks serializing check-then-write sequences."""

from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ..errors import LockTimeout

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Registry handing out one :class:`asyncio.Lock` per key.

    Locks are process local. Deployments running several processes against
    one database additionally rely on the row locks taken by the services.
    """

    def __init__(self) -> None:
        # Entries disappear once no coroutine holds or awaits the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: str, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the lock for ``key``; fail fast after ``timeout`` seconds."""

        lock = self.get(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except asyncio.TimeoutError:
            logger.info("lock wait timed out for %s", key)
            raise LockTimeout(
                f"{key} is busy, try again",
                details={"lock": key, "timeout_secs": timeout},
            ) from None
        try:
            yield
        finally:
            lock.release()


def table_key(table_id) -> str:
    return f"table:{table_id}"


def order_key(order_id) -> str:
    return f"order:{order_id}"


def payment_key(payment_id) -> str:
    return f"payment:{payment_id}"


locks = KeyedLocks()

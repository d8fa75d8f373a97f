# events.py

"""In-memory Pub/Sub dispatcher for engine state changes.

Services publish after a successful commit. Subscribers receive payloads on
:class:`asyncio.Queue` instances; when a Redis client is attached the payload
is also published as JSON on the ``rt:<event>`` channel.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Dict, List

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

TABLE_CREATED = "table.created"
TABLE_UPDATED = "table.updated"
TABLE_STATUS = "table.status"
TABLE_DELETED = "table.deleted"
RESERVATION_CREATED = "reservation.created"
RESERVATION_STATUS = "reservation.status"
ORDER_CREATED = "order.created"
ORDER_STATUS = "order.status"
ORDER_DELETED = "order.deleted"
PAYMENT_CREATED = "payment.created"
PAYMENT_SETTLED = "payment.settled"
PAYMENT_REFUNDED = "payment.refunded"
RECONCILIATION_WARNING = "reconciliation.warning"


class EventBus:
    """Dispatch events to subscribers via :class:`asyncio.Queue` instances."""

    def __init__(self, redis: Redis | None = None) -> None:
        self._subs: Dict[str, List[asyncio.Queue]] = defaultdict(list)
        self.redis = redis

    def subscribe(self, name: str) -> asyncio.Queue:
        """Register interest in ``name`` events and return a queue."""

        queue: asyncio.Queue = asyncio.Queue()
        self._subs[name].append(queue)
        return queue

    def unsubscribe(self, name: str, queue: asyncio.Queue) -> None:
        if queue in self._subs.get(name, []):
            self._subs[name].remove(queue)

    async def publish(self, name: str, payload: Dict[str, Any]) -> None:
        """Broadcast ``payload`` to all subscribers of ``name``."""

        for queue in self._subs.get(name, []):
            await queue.put(payload)
        if self.redis is not None:
            try:
                await self.redis.publish(f"rt:{name}", json.dumps(payload, default=str))
            except RedisError as exc:
                # The state change is already committed; subscribers on the
                # in-process queues have been served.
                logger.warning("redis publish failed for %s: %s", name, exc)


def from_settings() -> EventBus:
    """Build an :class:`EventBus`, Redis-backed when ``redis_url`` is set."""

    from .config import get_settings

    url = get_settings().redis_url
    return EventBus(Redis.from_url(url) if url else None)


event_bus = EventBus()

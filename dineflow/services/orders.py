"""Order workflow: creation with price snapshots and the kitchen lifecycle.

Orders never touch table occupancy; ``room_number`` is informational only.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Mapping
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .. import events
from ..domain import ORDER_TRANSITIONS, OrderStatus, check_transition, parse_status
from ..errors import InvalidRequest, NotFound
from ..models import Order, OrderItem
from ..repos_sqlalchemy import audit_repo_sql, menu_repo_sql, orders_repo_sql
from ..schemas import OrderItemView, OrderLine, OrderView, parse
from ..utils.locks import order_key
from .base import Service
from .menu import CENTS

logger = logging.getLogger(__name__)


def order_total(lines: Iterable[Mapping]) -> Decimal:
    """Return the sum of ``price`` x ``qty`` rounded to cents.

    >>> order_total([{"price": "10.00", "qty": 2}, {"price": "5.50", "qty": 1}])
    Decimal('25.50')
    """
    total = Decimal("0")
    for line in lines:
        total += Decimal(str(line["price"])) * int(line["qty"])
    return total.quantize(CENTS)


class OrderWorkflow(Service):
    """Create orders and advance them through the kitchen states."""

    async def create_order(
        self,
        session: AsyncSession,
        customer_id: str,
        items: Iterable[Mapping],
        room_number: str | None = None,
    ) -> OrderView:
        """Create a PENDING order from ``items``.

        Each entry in ``items`` must contain ``item_id`` and ``qty``. The
        current menu name and price for each item are snapshotted into the
        line items, and the order and its items are committed together.
        """

        if not customer_id:
            raise InvalidRequest("customer is required", details={"customer_id": customer_id})
        lines = [parse(OrderLine, **dict(entry)) for entry in items]
        if not lines:
            raise InvalidRequest("an order needs at least one item", details={"items": 0})

        async with self.transaction(session, "create_order") as pending:
            menu = await menu_repo_sql.get_many(session, (line.item_id for line in lines))
            order_items: List[OrderItem] = []
            for line in lines:
                item = menu.get(line.item_id)
                if item is None:
                    raise NotFound(
                        f"food item {line.item_id} not found",
                        details={"item_id": line.item_id},
                    )
                if not item.available:
                    raise InvalidRequest(
                        f"{item.name} is currently unavailable",
                        details={"item_id": item.id},
                    )
                order_items.append(
                    OrderItem(
                        item_id=item.id,
                        name_snapshot=item.name,
                        price_snapshot=Decimal(str(item.price)).quantize(CENTS),
                        qty=line.qty,
                    )
                )
            total = order_total(
                {"price": oi.price_snapshot, "qty": oi.qty} for oi in order_items
            )
            order = await orders_repo_sql.add_with_items(
                session,
                Order(
                    customer_id=customer_id,
                    status=OrderStatus.PENDING,
                    total_amount=total,
                    room_number=room_number,
                    created_at=self.clock.now(),
                ),
                order_items,
            )
            view = _view(order, order_items)
            pending.append((events.ORDER_CREATED, view.model_dump(mode="json")))
        logger.info(
            "order %s created with %d items total %s",
            order.id,
            len(order_items),
            total,
            extra={"order_id": order.id},
        )
        return view

    async def get_order(self, session: AsyncSession, order_id: UUID) -> OrderView:
        order = await load_order(session, order_id)
        return _view(order, await orders_repo_sql.get_items(session, order.id))

    async def list_orders(
        self,
        session: AsyncSession,
        customer_id: str | None = None,
        status: OrderStatus | str | None = None,
    ) -> List[OrderView]:
        if status is not None:
            status = parse_status(OrderStatus, status)
        orders = await orders_repo_sql.list_orders(
            session, customer_id=customer_id, status=status
        )
        return [
            _view(o, await orders_repo_sql.get_items(session, o.id)) for o in orders
        ]

    async def advance_status(
        self,
        session: AsyncSession,
        order_id: UUID,
        new_status: OrderStatus | str,
        actor: str = "kitchen",
    ) -> OrderView:
        """Move an order forward, or cancel it while PENDING or PREPARING."""

        new_status = parse_status(OrderStatus, new_status)
        async with self.hold(order_key(order_id)):
            async with self.transaction(session, "advance_order_status") as pending:
                order = await load_order(session, order_id, for_update=True)
                previous = order.status
                check_transition(
                    ORDER_TRANSITIONS,
                    previous,
                    new_status,
                    entity="order",
                    entity_id=order.id,
                )
                order.status = new_status
                audit_repo_sql.record(
                    session,
                    "order.status",
                    order.id,
                    {"from": previous.value, "to": new_status.value},
                    actor=actor,
                )
                pending.append(
                    (
                        events.ORDER_STATUS,
                        {
                            "order_id": str(order.id),
                            "from": previous.value,
                            "to": new_status.value,
                            "room_number": order.room_number,
                        },
                    )
                )
                items = await orders_repo_sql.get_items(session, order.id)
        logger.info(
            "order %s %s -> %s",
            order.id,
            previous.value,
            new_status.value,
            extra={"order_id": order.id, "status": new_status.value},
        )
        return _view(order, items)

    async def delete_order(self, session: AsyncSession, order_id: UUID) -> None:
        """Remove an order together with its line items."""

        async with self.hold(order_key(order_id)):
            async with self.transaction(session, "delete_order") as pending:
                order = await load_order(session, order_id, for_update=True)
                await orders_repo_sql.delete_with_items(session, order)
                pending.append((events.ORDER_DELETED, {"order_id": str(order_id)}))


async def load_order(
    session: AsyncSession, order_id: UUID, *, for_update: bool = False
) -> Order:
    order = await orders_repo_sql.get(session, order_id, for_update=for_update)
    if order is None:
        raise NotFound(f"order {order_id} not found", details={"order_id": order_id})
    return order


def _view(order: Order, items: Iterable[OrderItem]) -> OrderView:
    return OrderView.model_validate(order).model_copy(
        update={"items": [OrderItemView.model_validate(i) for i in items]}
    )

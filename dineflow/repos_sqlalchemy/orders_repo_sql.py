"""Repository helpers for orders and their line items.

An order and its items form one aggregate: they are added and removed
together within the caller's transaction.
"""

from __future__ import annotations

from typing import List, Sequence
from uuid import UUID

from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import OrderStatus
from ..models import Order, OrderItem


async def get(
    session: AsyncSession, order_id: UUID, *, for_update: bool = False
) -> Order | None:
    if for_update:
        return await session.get(
            Order, order_id, populate_existing=True, with_for_update=True
        )
    return await session.get(Order, order_id)


async def get_items(session: AsyncSession, order_id: UUID) -> List[OrderItem]:
    result = await session.execute(
        select(OrderItem)
        .where(OrderItem.order_id == order_id)
        .order_by(OrderItem.position)
    )
    return list(result.scalars().all())


async def list_orders(
    session: AsyncSession,
    *,
    customer_id: str | None = None,
    status: OrderStatus | None = None,
) -> List[Order]:
    """Return orders matching the filters, newest first."""
    stmt = select(Order).order_by(Order.created_at.desc())
    if customer_id is not None:
        stmt = stmt.where(Order.customer_id == customer_id)
    if status is not None:
        stmt = stmt.where(Order.status == status)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add_with_items(
    session: AsyncSession, order: Order, items: Sequence[OrderItem]
) -> Order:
    """Stage ``order`` and ``items`` in the current transaction."""
    session.add(order)
    await session.flush()  # obtain order.id
    for position, item in enumerate(items):
        item.order_id = order.id
        item.position = position
        session.add(item)
    await session.flush()
    return order


async def delete_with_items(session: AsyncSession, order: Order) -> None:
    await session.execute(sa_delete(OrderItem).where(OrderItem.order_id == order.id))
    await session.delete(order)
    await session.flush()

"""Repository helpers for the menu catalogue."""

from __future__ import annotations

from typing import Iterable, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import FoodItem


async def get(session: AsyncSession, item_id: UUID) -> FoodItem | None:
    return await session.get(FoodItem, item_id)


async def get_many(session: AsyncSession, item_ids: Iterable[UUID]) -> dict:
    """Return ``{id: FoodItem}`` for the requested ids that exist."""
    ids = list(set(item_ids))
    if not ids:
        return {}
    result = await session.execute(select(FoodItem).where(FoodItem.id.in_(ids)))
    return {item.id: item for item in result.scalars()}


async def list_items(
    session: AsyncSession,
    category: str | None = None,
    available_only: bool = False,
) -> List[FoodItem]:
    """Return menu items ordered by category then name."""
    stmt = select(FoodItem).order_by(FoodItem.category, FoodItem.name)
    if category is not None:
        stmt = stmt.where(FoodItem.category == category)
    if available_only:
        stmt = stmt.where(FoodItem.available.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add(session: AsyncSession, item: FoodItem) -> FoodItem:
    session.add(item)
    await session.flush()
    return item


async def delete(session: AsyncSession, item: FoodItem) -> None:
    await session.delete(item)
    await session.flush()

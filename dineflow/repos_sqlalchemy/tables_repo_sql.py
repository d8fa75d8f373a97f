"""Repository helpers for dining tables."""

from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import TableStatus
from ..models import DiningTable


async def get(
    session: AsyncSession, table_id: UUID, *, for_update: bool = False
) -> DiningTable | None:
    """Return the table with ``table_id``; lock the row when ``for_update``."""
    stmt = select(DiningTable).where(DiningTable.id == table_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_number(session: AsyncSession, number: int) -> DiningTable | None:
    result = await session.execute(
        select(DiningTable).where(DiningTable.number == number)
    )
    return result.scalar_one_or_none()


async def list_tables(
    session: AsyncSession, status: TableStatus | None = None
) -> List[DiningTable]:
    """Return tables ordered by number, optionally filtered by ``status``."""
    stmt = select(DiningTable).order_by(DiningTable.number)
    if status is not None:
        stmt = stmt.where(DiningTable.status == status)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_candidates(
    session: AsyncSession, party_size: int
) -> List[DiningTable]:
    """Return AVAILABLE tables seating ``party_size``, smallest first.

    Ties on capacity are broken by the lowest table number.
    """
    result = await session.execute(
        select(DiningTable)
        .where(
            DiningTable.status == TableStatus.AVAILABLE,
            DiningTable.capacity >= party_size,
        )
        .order_by(DiningTable.capacity, DiningTable.number)
    )
    return list(result.scalars().all())


async def max_capacity(session: AsyncSession) -> int:
    return await session.scalar(select(func.max(DiningTable.capacity))) or 0


async def add(session: AsyncSession, table: DiningTable) -> DiningTable:
    session.add(table)
    await session.flush()
    return table


async def delete(session: AsyncSession, table: DiningTable) -> None:
    await session.delete(table)
    await session.flush()

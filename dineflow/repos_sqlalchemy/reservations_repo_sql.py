"""Repository helpers for reservations."""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Iterable, List
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import ACTIVE_RESERVATION_STATUSES, ReservationStatus
from ..models import Reservation

MINUTES_PER_DAY = 24 * 60


async def get(
    session: AsyncSession, reservation_id: UUID, *, for_update: bool = False
) -> Reservation | None:
    """Return the reservation; re-read and lock the row when ``for_update``."""
    if for_update:
        return await session.get(
            Reservation, reservation_id, populate_existing=True, with_for_update=True
        )
    return await session.get(Reservation, reservation_id)


async def list_reservations(
    session: AsyncSession,
    *,
    customer_id: str | None = None,
    status: ReservationStatus | None = None,
    on: date | None = None,
    table_id: UUID | None = None,
) -> List[Reservation]:
    """Return reservations matching the filters, newest slot first."""
    stmt = select(Reservation).order_by(
        Reservation.reservation_date.desc(), Reservation.start_time.desc()
    )
    if customer_id is not None:
        stmt = stmt.where(Reservation.customer_id == customer_id)
    if status is not None:
        stmt = stmt.where(Reservation.status == status)
    if on is not None:
        stmt = stmt.where(Reservation.reservation_date == on)
    if table_id is not None:
        stmt = stmt.where(Reservation.table_id == table_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_active_between(
    session: AsyncSession, table_id: UUID, first: date, last: date
) -> List[Reservation]:
    """Return active reservations on ``table_id`` that may reach ``first``..``last``.

    Reservations dated before ``first`` are included as far back as the
    longest active reservation on the table could extend, so multi-day
    windows and windows crossing midnight are both seen.
    """
    active = list(ACTIVE_RESERVATION_STATUSES)
    longest = await session.scalar(
        select(func.max(Reservation.duration_mins)).where(
            Reservation.table_id == table_id, Reservation.status.in_(active)
        )
    )
    lookback = math.ceil((longest or 0) / MINUTES_PER_DAY)
    result = await session.execute(
        select(Reservation).where(
            Reservation.table_id == table_id,
            Reservation.reservation_date.between(first - timedelta(days=lookback), last),
            Reservation.status.in_(active),
        )
    )
    return list(result.scalars().all())


async def list_for_table(
    session: AsyncSession,
    table_id: UUID,
    statuses: Iterable[ReservationStatus],
) -> List[Reservation]:
    stmt = select(Reservation).where(
        Reservation.table_id == table_id, Reservation.status.in_(list(statuses))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add(session: AsyncSession, reservation: Reservation) -> Reservation:
    session.add(reservation)
    await session.flush()
    return reservation

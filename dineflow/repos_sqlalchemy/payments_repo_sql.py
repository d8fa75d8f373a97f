"""Repository helpers for payments."""

from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import PaymentStatus
from ..models import Payment


async def get(
    session: AsyncSession, payment_id: UUID, *, for_update: bool = False
) -> Payment | None:
    if for_update:
        return await session.get(
            Payment, payment_id, populate_existing=True, with_for_update=True
        )
    return await session.get(Payment, payment_id)


async def list_payments(
    session: AsyncSession,
    *,
    status: PaymentStatus | None = None,
    customer_id: str | None = None,
) -> List[Payment]:
    stmt = select(Payment).order_by(Payment.created_at.desc())
    if status is not None:
        stmt = stmt.where(Payment.status == status)
    if customer_id is not None:
        stmt = stmt.where(Payment.customer_id == customer_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add(session: AsyncSession, payment: Payment) -> Payment:
    session.add(payment)
    await session.flush()
    return payment

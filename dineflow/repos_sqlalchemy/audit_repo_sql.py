"""Repository helpers for the audit trail."""

from __future__ import annotations

from typing import Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditLog


def record(
    session: AsyncSession,
    action: str,
    entity_id: Any = None,
    meta: dict | None = None,
    actor: str = "system",
) -> None:
    """Stage an audit entry in the current transaction."""
    session.add(
        AuditLog(
            actor=actor,
            action=action,
            entity_id=str(entity_id) if entity_id is not None else None,
            meta=meta,
        )
    )


async def list_for(session: AsyncSession, entity_id: Any) -> List[AuditLog]:
    result = await session.execute(
        select(AuditLog).where(AuditLog.entity_id == str(entity_id)).order_by(AuditLog.id)
    )
    return list(result.scalars().all())

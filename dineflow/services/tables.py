"""Table registry: the physical tables, their capacity and current status."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .. import events
from ..domain import ACTIVE_RESERVATION_STATUSES, TableStatus, parse_status
from ..errors import Conflict, InvalidRequest, NotFound
from ..models import DiningTable
from ..repos_sqlalchemy import audit_repo_sql, reservations_repo_sql, tables_repo_sql
from ..schemas import TableView
from ..utils.locks import table_key
from .base import Service

logger = logging.getLogger(__name__)


async def load_table(
    session: AsyncSession, table_id: UUID, *, for_update: bool = False
) -> DiningTable:
    """Return the table or raise :class:`NotFound`."""
    table = await tables_repo_sql.get(session, table_id, for_update=for_update)
    if table is None:
        raise NotFound(f"table {table_id} not found", details={"table_id": table_id})
    return table


def write_status(
    session: AsyncSession,
    table: DiningTable,
    status: TableStatus,
    pending: list,
    *,
    reason: str,
) -> None:
    """Set ``table.status`` and queue a ``table.status`` event when it changes."""

    if table.status == status:
        return
    previous = table.status
    table.status = status
    pending.append(
        (
            events.TABLE_STATUS,
            {
                "table_id": str(table.id),
                "number": table.number,
                "from": previous.value,
                "to": status.value,
                "reason": reason,
            },
        )
    )
    logger.info(
        "table %s %s -> %s (%s)",
        table.number,
        previous.value,
        status.value,
        reason,
        extra={"table_id": table.id, "status": status.value},
    )


class TableRegistry(Service):
    """CRUD and status operations for dining tables."""

    async def list_tables(
        self, session: AsyncSession, status: TableStatus | str | None = None
    ) -> List[TableView]:
        if status is not None:
            status = parse_status(TableStatus, status)
        tables = await tables_repo_sql.list_tables(session, status)
        return [TableView.model_validate(t) for t in tables]

    async def get_table(self, session: AsyncSession, table_id: UUID) -> TableView:
        return TableView.model_validate(await load_table(session, table_id))

    async def create_table(
        self,
        session: AsyncSession,
        number: int,
        capacity: int,
        location: str | None = None,
    ) -> TableView:
        """Register a new table; ``number`` must be unique."""

        _check_capacity(capacity)
        async with self.transaction(session, "create_table") as pending:
            if await tables_repo_sql.get_by_number(session, number) is not None:
                raise Conflict(
                    f"table number {number} already exists",
                    details={"number": number},
                )
            table = await tables_repo_sql.add(
                session,
                DiningTable(
                    number=number,
                    capacity=capacity,
                    location=location,
                    status=TableStatus.AVAILABLE,
                ),
            )
            view = TableView.model_validate(table)
            pending.append((events.TABLE_CREATED, view.model_dump(mode="json")))
        return view

    async def update_table(
        self,
        session: AsyncSession,
        table_id: UUID,
        *,
        number: int | None = None,
        capacity: int | None = None,
        location: str | None = None,
    ) -> TableView:
        """Edit the descriptive fields of a table."""

        if capacity is not None:
            _check_capacity(capacity)
        async with self.hold(table_key(table_id)):
            async with self.transaction(session, "update_table") as pending:
                table = await load_table(session, table_id, for_update=True)
                if number is not None and number != table.number:
                    clash = await tables_repo_sql.get_by_number(session, number)
                    if clash is not None:
                        raise Conflict(
                            f"table number {number} already exists",
                            details={"number": number, "table_id": table_id},
                        )
                    table.number = number
                if capacity is not None:
                    table.capacity = capacity
                if location is not None:
                    table.location = location
                await session.flush()
                view = TableView.model_validate(table)
                pending.append((events.TABLE_UPDATED, view.model_dump(mode="json")))
        return view

    async def set_status(
        self,
        session: AsyncSession,
        table_id: UUID,
        status: TableStatus | str,
        actor: str = "staff",
    ) -> TableView:
        """Manual status override; writing the current status is a no-op.

        Reservation conflicts are not consulted here.
        """

        status = parse_status(TableStatus, status)
        async with self.hold(table_key(table_id)):
            async with self.transaction(session, "set_table_status") as pending:
                table = await load_table(session, table_id, for_update=True)
                if table.status != status:
                    audit_repo_sql.record(
                        session,
                        "table.status",
                        table.id,
                        {"from": table.status.value, "to": status.value},
                        actor=actor,
                    )
                write_status(session, table, status, pending, reason="manual")
                view = TableView.model_validate(table)
        return view

    async def delete_table(self, session: AsyncSession, table_id: UUID) -> None:
        """Remove a table that has no active reservations."""

        async with self.hold(table_key(table_id)):
            async with self.transaction(session, "delete_table") as pending:
                table = await load_table(session, table_id, for_update=True)
                active = await reservations_repo_sql.list_for_table(
                    session, table.id, ACTIVE_RESERVATION_STATUSES
                )
                if active:
                    raise Conflict(
                        f"table {table.number} has active reservations",
                        details={
                            "table_id": table.id,
                            "reservations": ",".join(str(r.id) for r in active),
                        },
                    )
                await tables_repo_sql.delete(session, table)
                pending.append(
                    (events.TABLE_DELETED, {"table_id": str(table_id), "number": table.number})
                )


def _check_capacity(capacity: int) -> None:
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
        raise InvalidRequest(
            "capacity must be a positive integer", details={"capacity": capacity}
        )

"""Reservation scheduler: booking with conflict avoidance and status changes.

Booking is a check-then-write sequence. It is only correct while the
per-table lock is held across the overlap check and the commit, and while the
table row is re-read ``FOR UPDATE`` inside that lock. Both are required for
every path that writes a reservation or moves its status.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .. import events
from ..clock import combine
from ..domain import (
    RESERVATION_TRANSITIONS,
    ReservationStatus,
    TableStatus,
    Window,
    check_transition,
    parse_status,
)
from ..errors import Conflict, InvalidRequest, InvalidTransition, NotFound
from ..models import DiningTable, Reservation
from ..repos_sqlalchemy import audit_repo_sql, reservations_repo_sql, tables_repo_sql
from ..schemas import BookingRequest, ReservationView, parse
from ..utils.locks import table_key
from .base import PendingEvents, Service
from .tables import load_table, write_status

logger = logging.getLogger(__name__)


class ReservationScheduler(Service):
    """Books tables for time windows and drives the reservation lifecycle."""

    # -- queries -----------------------------------------------------------

    async def get_reservation(
        self, session: AsyncSession, reservation_id: UUID
    ) -> ReservationView:
        return ReservationView.model_validate(
            await self._load(session, reservation_id)
        )

    async def list_reservations(
        self,
        session: AsyncSession,
        *,
        customer_id: str | None = None,
        status: ReservationStatus | str | None = None,
        on: date | None = None,
        table_id: UUID | None = None,
    ) -> List[ReservationView]:
        if status is not None:
            status = parse_status(ReservationStatus, status)
        rows = await reservations_repo_sql.list_reservations(
            session, customer_id=customer_id, status=status, on=on, table_id=table_id
        )
        return [ReservationView.model_validate(r) for r in rows]

    async def find_overlapping(
        self,
        session: AsyncSession,
        table_id: UUID,
        on: date,
        start_time: time,
        duration_mins: int,
        exclude: UUID | None = None,
    ) -> List[ReservationView]:
        """Return active reservations on ``table_id`` overlapping the window."""

        if duration_mins <= 0:
            raise InvalidRequest(
                "duration must be positive", details={"duration_mins": duration_mins}
            )
        window = Window(combine(self.clock, on, start_time), duration_mins)
        rows = await self._overlapping(session, table_id, window, exclude)
        return [ReservationView.model_validate(r) for r in rows]

    # -- booking -----------------------------------------------------------

    async def create_reservation(
        self,
        session: AsyncSession,
        customer_id: str,
        reservation_date: date,
        start_time: time,
        party_size: int,
        duration_mins: int | None = None,
        table_id: UUID | None = None,
        special_requests: str | None = None,
    ) -> ReservationView:
        """Book a table for the window and persist the reservation as PENDING.

        A specific ``table_id`` is used as given. Otherwise the smallest
        AVAILABLE table seating the party with no overlapping active
        reservation is chosen, lowest table number first. The table status
        is left untouched: a pending reservation holds a slot, not the table.
        """

        request = parse(
            BookingRequest,
            customer_id=customer_id,
            reservation_date=reservation_date,
            start_time=start_time,
            party_size=party_size,
            duration_mins=(
                self.settings.default_duration_mins
                if duration_mins is None
                else duration_mins
            ),
            table_id=table_id,
            special_requests=special_requests,
        )
        window = Window(
            combine(self.clock, request.reservation_date, request.start_time),
            request.duration_mins,
        )
        now = self.clock.now()
        if window.start < now:
            raise InvalidRequest(
                "reservation window starts in the past",
                details={"start": window.start.isoformat(), "now": now.isoformat()},
            )

        if request.table_id is not None:
            candidates = [request.table_id]
        else:
            largest = await tables_repo_sql.max_capacity(session)
            if request.party_size > largest:
                raise InvalidRequest(
                    f"party of {request.party_size} exceeds every table's capacity",
                    details={"party_size": request.party_size, "max_capacity": largest},
                )
            candidates = [
                t.id
                for t in await tables_repo_sql.list_candidates(
                    session, request.party_size
                )
            ]

        for candidate in candidates:
            reservation = await self._try_book(
                session, candidate, request, window, explicit=request.table_id is not None
            )
            if reservation is not None:
                return ReservationView.model_validate(reservation)

        logger.info(
            "no table available for party of %d at %s",
            request.party_size,
            window.start.isoformat(),
        )
        raise Conflict(
            "no table available",
            details={
                "date": request.reservation_date,
                "start_time": request.start_time,
                "duration_mins": request.duration_mins,
                "party_size": request.party_size,
            },
        )

    async def _try_book(
        self,
        session: AsyncSession,
        table_id: UUID,
        request: BookingRequest,
        window: Window,
        *,
        explicit: bool,
    ) -> Reservation | None:
        """Book ``table_id`` under its lock or return ``None`` if it is taken.

        For an explicitly requested table every obstacle raises instead.
        """

        async with self.hold(table_key(table_id)):
            async with self.transaction(session, "create_reservation") as pending:
                table = await load_table(session, table_id, for_update=True)
                if explicit:
                    if table.status == TableStatus.MAINTENANCE:
                        raise Conflict(
                            f"table {table.number} is under maintenance",
                            details={"table_id": table.id},
                        )
                    if request.party_size > table.capacity:
                        raise InvalidRequest(
                            f"party of {request.party_size} exceeds table "
                            f"{table.number} capacity {table.capacity}",
                            details={
                                "table_id": table.id,
                                "party_size": request.party_size,
                                "capacity": table.capacity,
                            },
                        )
                elif (
                    table.status != TableStatus.AVAILABLE
                    or table.capacity < request.party_size
                ):
                    # changed while we waited for the lock
                    return None

                clashes = await self._overlapping(session, table.id, window)
                if clashes:
                    if explicit:
                        clash = clashes[0]
                        raise Conflict(
                            f"table {table.number} is already booked for this window",
                            details={
                                "table_id": table.id,
                                "requested": str(window),
                                "conflicting_reservation": clash.id,
                                "conflicting_window": str(self._window(clash)),
                            },
                        )
                    return None

                reservation = await reservations_repo_sql.add(
                    session,
                    Reservation(
                        table_id=table.id,
                        customer_id=request.customer_id,
                        reservation_date=request.reservation_date,
                        start_time=request.start_time,
                        duration_mins=request.duration_mins,
                        party_size=request.party_size,
                        special_requests=request.special_requests,
                        status=ReservationStatus.PENDING,
                        created_at=self.clock.now(),
                    ),
                )
                pending.append(
                    (
                        events.RESERVATION_CREATED,
                        ReservationView.model_validate(reservation).model_dump(mode="json"),
                    )
                )
        logger.info(
            "reservation %s booked on table %s for %s",
            reservation.id,
            table.number,
            window.start.isoformat(),
            extra={"reservation_id": reservation.id, "table_id": table.id},
        )
        return reservation

    # -- lifecycle ---------------------------------------------------------

    async def update_status(
        self,
        session: AsyncSession,
        reservation_id: UUID,
        new_status: ReservationStatus | str,
        actor: str = "staff",
    ) -> ReservationView:
        """Move a reservation along its lifecycle and adjust its table."""

        new_status = parse_status(ReservationStatus, new_status)
        reservation = await self._load(session, reservation_id)
        async with self.hold(table_key(reservation.table_id)):
            async with self.transaction(session, "update_reservation_status") as pending:
                reservation = await self._load(session, reservation_id, for_update=True)
                await self.apply_transition(
                    session, reservation, new_status, pending, actor=actor
                )
        return ReservationView.model_validate(reservation)

    async def cancel_reservation(
        self, session: AsyncSession, reservation_id: UUID, actor: str = "customer"
    ) -> ReservationView:
        return await self.update_status(
            session, reservation_id, ReservationStatus.CANCELLED, actor=actor
        )

    async def apply_transition(
        self,
        session: AsyncSession,
        reservation: Reservation,
        new_status: ReservationStatus,
        pending: PendingEvents,
        *,
        actor: str,
    ) -> None:
        """Validate and stage a transition inside the caller's transaction.

        The caller must hold the lock of the reservation's table. Nothing is
        staged when the transition is rejected.
        """

        previous = reservation.status
        check_transition(
            RESERVATION_TRANSITIONS,
            previous,
            new_status,
            entity="reservation",
            entity_id=reservation.id,
        )
        window = self._window(reservation)
        now = self.clock.now()
        table = await load_table(session, reservation.table_id, for_update=True)

        if new_status == ReservationStatus.CONFIRMED:
            if now >= window.start:
                raise self._timing_error(reservation, new_status, window, now,
                                         "window has already started")
            if window.start.date() == now.date() and table.status == TableStatus.AVAILABLE:
                write_status(session, table, TableStatus.RESERVED, pending, reason="confirmed")
        elif new_status == ReservationStatus.SEATED:
            if now < window.start:
                raise self._timing_error(reservation, new_status, window, now,
                                         "window has not started yet")
            await self._check_seatable(session, table, reservation)
            write_status(session, table, TableStatus.OCCUPIED, pending, reason="seated")
        else:
            held = (
                previous == ReservationStatus.SEATED and table.status == TableStatus.OCCUPIED
            ) or (
                previous == ReservationStatus.CONFIRMED
                and table.status == TableStatus.RESERVED
            )
            if held:
                await self._release(session, table, reservation, pending, now)

        reservation.status = new_status
        audit_repo_sql.record(
            session,
            "reservation.status",
            reservation.id,
            {"from": previous.value, "to": new_status.value},
            actor=actor,
        )
        pending.append(
            (
                events.RESERVATION_STATUS,
                {
                    "reservation_id": str(reservation.id),
                    "table_id": str(reservation.table_id),
                    "from": previous.value,
                    "to": new_status.value,
                },
            )
        )
        logger.info(
            "reservation %s %s -> %s",
            reservation.id,
            previous.value,
            new_status.value,
            extra={"reservation_id": reservation.id, "status": new_status.value},
        )

    async def _check_seatable(
        self, session: AsyncSession, table: DiningTable, reservation: Reservation
    ) -> None:
        if table.status == TableStatus.MAINTENANCE:
            raise Conflict(
                f"table {table.number} is under maintenance",
                details={"table_id": table.id, "reservation_id": reservation.id},
            )
        seated = await reservations_repo_sql.list_for_table(
            session, table.id, [ReservationStatus.SEATED]
        )
        others = [r for r in seated if r.id != reservation.id]
        if others:
            raise Conflict(
                f"table {table.number} is still occupied",
                details={
                    "table_id": table.id,
                    "reservation_id": reservation.id,
                    "seated_reservation": others[0].id,
                },
            )

    async def _release(
        self,
        session: AsyncSession,
        table: DiningTable,
        reservation: Reservation,
        pending: PendingEvents,
        now: datetime,
    ) -> None:
        """Hand the table to the next claimant or make it AVAILABLE."""

        claims = await reservations_repo_sql.list_for_table(
            session,
            table.id,
            [ReservationStatus.SEATED, ReservationStatus.CONFIRMED],
        )
        claims = [r for r in claims if r.id != reservation.id]
        if any(r.status == ReservationStatus.SEATED for r in claims):
            status = TableStatus.OCCUPIED
        elif any(
            r.status == ReservationStatus.CONFIRMED
            and r.reservation_date == now.date()
            and self._window(r).end > now
            for r in claims
        ):
            status = TableStatus.RESERVED
        else:
            status = TableStatus.AVAILABLE
        write_status(session, table, status, pending, reason="released")

    # -- helpers -----------------------------------------------------------

    async def _load(
        self, session: AsyncSession, reservation_id: UUID, *, for_update: bool = False
    ) -> Reservation:
        reservation = await reservations_repo_sql.get(
            session, reservation_id, for_update=for_update
        )
        if reservation is None:
            raise NotFound(
                f"reservation {reservation_id} not found",
                details={"reservation_id": reservation_id},
            )
        return reservation

    async def _overlapping(
        self,
        session: AsyncSession,
        table_id: UUID,
        window: Window,
        exclude: UUID | None = None,
    ) -> List[Reservation]:
        rows = await reservations_repo_sql.list_active_between(
            session, table_id, window.start.date(), window.end.date()
        )
        return [
            r for r in rows if r.id != exclude and self._window(r).overlaps(window)
        ]

    def _window(self, reservation: Reservation) -> Window:
        return Window(
            combine(self.clock, reservation.reservation_date, reservation.start_time),
            reservation.duration_mins,
        )

    @staticmethod
    def _timing_error(
        reservation: Reservation,
        new_status: ReservationStatus,
        window: Window,
        now: datetime,
        reason: str,
    ) -> InvalidTransition:
        return InvalidTransition(
            f"reservation {reservation.id} cannot move to {new_status.value}: {reason}",
            details={
                "entity": "reservation",
                "id": reservation.id,
                "from": reservation.status.value,
                "to": new_status.value,
                "window": str(window),
                "now": now.isoformat(),
            },
        )

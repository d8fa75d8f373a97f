"""Payment reconciler.

A payment settles exactly one reservation or order. Settling a reservation
payment confirms the reservation through the scheduler's guarded transition;
settling an order payment only cross-checks the amount. Anything that cannot
be applied is reported as a :class:`~dineflow.errors.ReconciliationWarning`
while the payment itself still settles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .. import events
from ..domain import (
    PAYMENT_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
    ReservationStatus,
    check_transition,
    parse_status,
)
from ..errors import InvalidRequest, InvalidTransition, NotFound, ReconciliationWarning
from ..models import Payment
from ..repos_sqlalchemy import (
    audit_repo_sql,
    orders_repo_sql,
    payments_repo_sql,
    reservations_repo_sql,
)
from ..schemas import PaymentTarget, PaymentView, parse
from ..utils.locks import order_key, payment_key, table_key
from .base import PendingEvents, Service
from .menu import CENTS, to_money
from .scheduler import ReservationScheduler

logger = logging.getLogger(__name__)

SETTLEMENT_OUTCOMES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED})


@dataclass
class SettlementResult:
    """Settled payment plus any anomalies found while applying it."""

    payment: PaymentView
    warnings: List[ReconciliationWarning] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings


class PaymentReconciler(Service):
    """Record payment intents, settle them and issue refunds."""

    def __init__(self, scheduler: ReservationScheduler | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.scheduler = scheduler or ReservationScheduler(
            clock=self.clock, bus=self.bus, locks=self.locks, settings=self.settings
        )

    async def get_payment(self, session: AsyncSession, payment_id: UUID) -> PaymentView:
        return PaymentView.model_validate(await _load(session, payment_id))

    async def list_payments(
        self,
        session: AsyncSession,
        status: PaymentStatus | str | None = None,
        customer_id: str | None = None,
    ) -> List[PaymentView]:
        if status is not None:
            status = parse_status(PaymentStatus, status)
        rows = await payments_repo_sql.list_payments(
            session, status=status, customer_id=customer_id
        )
        return [PaymentView.model_validate(p) for p in rows]

    async def record_payment_intent(
        self,
        session: AsyncSession,
        customer_id: str,
        amount,
        method: str,
        *,
        reservation_id: UUID | None = None,
        order_id: UUID | None = None,
        currency: str | None = None,
        gateway_ref: str | None = None,
    ) -> PaymentView:
        """Create a PENDING payment for exactly one reservation or order."""

        target = parse(PaymentTarget, reservation_id=reservation_id, order_id=order_id)
        amount = to_money(amount, "amount")
        if amount <= 0:
            raise InvalidRequest("amount must be positive", details={"amount": amount})
        if not method:
            raise InvalidRequest("payment method is required", details={"method": method})
        if not customer_id:
            raise InvalidRequest("customer is required", details={"customer_id": customer_id})

        async with self.transaction(session, "record_payment_intent") as pending:
            if target.reservation_id is not None:
                if await reservations_repo_sql.get(session, target.reservation_id) is None:
                    raise NotFound(
                        f"reservation {target.reservation_id} not found",
                        details={"reservation_id": target.reservation_id},
                    )
            elif await orders_repo_sql.get(session, target.order_id) is None:
                raise NotFound(
                    f"order {target.order_id} not found",
                    details={"order_id": target.order_id},
                )
            payment = await payments_repo_sql.add(
                session,
                Payment(
                    customer_id=customer_id,
                    amount=amount,
                    currency=(currency or self.settings.currency).lower(),
                    method=method,
                    status=PaymentStatus.PENDING,
                    gateway_ref=gateway_ref,
                    reservation_id=target.reservation_id,
                    order_id=target.order_id,
                    created_at=self.clock.now(),
                ),
            )
            view = PaymentView.model_validate(payment)
            pending.append((events.PAYMENT_CREATED, view.model_dump(mode="json")))
        return view

    async def settle(
        self,
        session: AsyncSession,
        payment_id: UUID,
        outcome: PaymentStatus | str,
        gateway_ref: str | None = None,
        actor: str = "gateway",
    ) -> SettlementResult:
        """Apply the gateway ``outcome`` and push status into the target.

        The payment update and the target's status push commit together.
        """

        outcome = parse_status(PaymentStatus, outcome)
        if outcome not in SETTLEMENT_OUTCOMES:
            raise InvalidRequest(
                f"settlement outcome must be completed or failed, not {outcome.value}",
                details={"payment_id": payment_id, "outcome": outcome.value},
            )
        payment = await _load(session, payment_id)
        target_lock = await self._target_lock(session, payment)
        warnings: List[ReconciliationWarning] = []

        async with self.hold(payment_key(payment_id)), self.hold(target_lock):
            async with self.transaction(session, "settle_payment") as pending:
                payment = await _load(session, payment_id, for_update=True)
                previous = payment.status
                check_transition(
                    PAYMENT_TRANSITIONS,
                    previous,
                    outcome,
                    entity="payment",
                    entity_id=payment.id,
                )
                payment.status = outcome
                payment.settled_at = self.clock.now()
                if gateway_ref:
                    payment.gateway_ref = gateway_ref
                audit_repo_sql.record(
                    session,
                    "payment.settle",
                    payment.id,
                    {"from": previous.value, "to": outcome.value},
                    actor=actor,
                )

                if outcome == PaymentStatus.COMPLETED:
                    if payment.reservation_id is not None:
                        warnings += await self._confirm_reservation(session, payment, pending)
                    else:
                        warnings += await self._check_order(session, payment)

                for warning in warnings:
                    audit_repo_sql.record(
                        session,
                        "reconciliation.warning",
                        payment.id,
                        warning.as_dict(),
                        actor=actor,
                    )
                    pending.append((events.RECONCILIATION_WARNING, warning.as_dict()))
                    logger.warning(
                        "payment %s settled with anomaly: %s",
                        payment.id,
                        warning.reason,
                        extra={"payment_id": payment.id, "code": warning.reason},
                    )
                view = PaymentView.model_validate(payment)
                pending.append((events.PAYMENT_SETTLED, view.model_dump(mode="json")))

        logger.info(
            "payment %s %s -> %s",
            payment.id,
            previous.value,
            outcome.value,
            extra={"payment_id": payment.id, "status": outcome.value},
        )
        return SettlementResult(view, warnings)

    async def refund(
        self, session: AsyncSession, payment_id: UUID, actor: str = "staff"
    ) -> PaymentView:
        """Refund a COMPLETED payment.

        The linked reservation or order keeps its status; reverting it is a
        staff decision.
        """

        async with self.hold(payment_key(payment_id)):
            async with self.transaction(session, "refund_payment") as pending:
                payment = await _load(session, payment_id, for_update=True)
                check_transition(
                    PAYMENT_TRANSITIONS,
                    payment.status,
                    PaymentStatus.REFUNDED,
                    entity="payment",
                    entity_id=payment.id,
                )
                payment.status = PaymentStatus.REFUNDED
                payment.refunded_at = self.clock.now()
                audit_repo_sql.record(
                    session,
                    "payment.refund",
                    payment.id,
                    {"amount": str(payment.amount)},
                    actor=actor,
                )
                view = PaymentView.model_validate(payment)
                pending.append((events.PAYMENT_REFUNDED, view.model_dump(mode="json")))
        return view

    async def _target_lock(self, session: AsyncSession, payment: Payment) -> str:
        if payment.reservation_id is not None:
            reservation = await reservations_repo_sql.get(session, payment.reservation_id)
            if reservation is not None:
                return table_key(reservation.table_id)
            return f"reservation:{payment.reservation_id}"
        return order_key(payment.order_id)

    async def _confirm_reservation(
        self, session: AsyncSession, payment: Payment, pending: PendingEvents
    ) -> List[ReconciliationWarning]:
        reservation = await reservations_repo_sql.get(
            session, payment.reservation_id, for_update=True
        )
        if reservation is None:
            return [
                ReconciliationWarning(
                    payment.id,
                    "reservation_missing",
                    {"reservation_id": payment.reservation_id},
                )
            ]
        try:
            await self.scheduler.apply_transition(
                session,
                reservation,
                ReservationStatus.CONFIRMED,
                pending,
                actor="payment",
            )
        except InvalidTransition as exc:
            return [
                ReconciliationWarning(
                    payment.id,
                    "reservation_not_confirmed",
                    {
                        "reservation_id": reservation.id,
                        "reservation_status": reservation.status.value,
                        "error": exc.message,
                    },
                )
            ]
        return []

    async def _check_order(
        self, session: AsyncSession, payment: Payment
    ) -> List[ReconciliationWarning]:
        order = await orders_repo_sql.get(session, payment.order_id, for_update=True)
        if order is None:
            return [
                ReconciliationWarning(
                    payment.id, "order_missing", {"order_id": payment.order_id}
                )
            ]
        warnings: List[ReconciliationWarning] = []
        paid = Decimal(str(payment.amount)).quantize(CENTS)
        due = Decimal(str(order.total_amount)).quantize(CENTS)
        if paid != due:
            warnings.append(
                ReconciliationWarning(
                    payment.id,
                    "amount_mismatch",
                    {"order_id": order.id, "paid": paid, "order_total": due},
                )
            )
        if order.status == OrderStatus.CANCELLED:
            warnings.append(
                ReconciliationWarning(
                    payment.id, "order_cancelled", {"order_id": order.id}
                )
            )
        return warnings


async def _load(
    session: AsyncSession, payment_id: UUID, *, for_update: bool = False
) -> Payment:
    payment = await payments_repo_sql.get(session, payment_id, for_update=for_update)
    if payment is None:
        raise NotFound(f"payment {payment_id} not found", details={"payment_id": payment_id})
    return payment

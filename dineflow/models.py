"""Database models for the restaurant engine.

These models describe the persisted record sets. They are kept isolated from
any service wiring so that they can be used in tests or migrations
independently. Relationships are plain foreign-key identifiers; aggregates
such as an order and its line items are written as one unit by the services.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    Uuid,
    func,
)
from sqlalchemy.orm import declarative_base

from .domain import OrderStatus, PaymentStatus, ReservationStatus, TableStatus

Base = declarative_base()


class DiningTable(Base):
    """Physical dining tables."""

    __tablename__ = "tables"
    __table_args__ = (CheckConstraint("capacity > 0", name="ck_tables_capacity"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    number = Column(Integer, unique=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    status = Column(Enum(TableStatus), nullable=False, default=TableStatus.AVAILABLE)
    location = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Reservation(Base):
    """Table reservations for a date and start time."""

    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_table_date", "table_id", "reservation_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    table_id = Column(Uuid, ForeignKey("tables.id"), nullable=False)
    customer_id = Column(String, nullable=False, index=True)
    reservation_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    duration_mins = Column(Integer, nullable=False, default=60)
    party_size = Column(Integer, nullable=False)
    special_requests = Column(Text, nullable=True)
    status = Column(
        Enum(ReservationStatus), nullable=False, default=ReservationStatus.PENDING
    )
    total_amount = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class FoodItem(Base):
    """Menu catalogue entries."""

    __tablename__ = "food_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String, nullable=False, index=True)
    available = Column(Boolean, nullable=False, default=True)
    preparation_mins = Column(Integer, nullable=True)

    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Order(Base):
    """Food orders placed by a customer."""

    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(String, nullable=False, index=True)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    total_amount = Column(Numeric(10, 2), nullable=False)
    room_number = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class OrderItem(Base):
    """Line items belonging to an order."""

    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("qty >= 1", name="ck_order_items_qty"),)

    id = Column(Integer, primary_key=True)
    order_id = Column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id = Column(Uuid, ForeignKey("food_items.id"), nullable=False)
    position = Column(Integer, nullable=False)
    name_snapshot = Column(String, nullable=False)
    price_snapshot = Column(Numeric(10, 2), nullable=False)
    qty = Column(Integer, nullable=False)


class Payment(Base):
    """Payments settling exactly one reservation or order."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "(reservation_id IS NULL) <> (order_id IS NULL)",
            name="ck_payments_single_target",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False, default="usd")
    method = Column(String, nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    gateway_ref = Column(String, nullable=True)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=True)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)


class AuditLog(Base):
    """Audit trail of state changes and reconciliation anomalies."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)
    at = Column(DateTime(timezone=True), server_default=func.now())
    actor = Column(String, nullable=False)
    action = Column(String, nullable=False)
    entity_id = Column(String, nullable=True, index=True)
    meta = Column(JSON, nullable=True)


__all__ = [
    "Base",
    "DiningTable",
    "Reservation",
    "FoodItem",
    "Order",
    "OrderItem",
    "Payment",
    "AuditLog",
]

# schemas.py

"""Pydantic models for engine inputs and the views it returns."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .domain import OrderStatus, PaymentStatus, ReservationStatus, TableStatus
from .errors import InvalidRequest


class BookingRequest(BaseModel):
    """Input for creating a reservation."""

    customer_id: str = Field(min_length=1)
    reservation_date: date
    start_time: time
    party_size: int = Field(ge=1)
    duration_mins: int = Field(gt=0)
    table_id: Optional[UUID] = None
    special_requests: Optional[str] = None


class OrderLine(BaseModel):
    """A requested ``(item, quantity)`` pair."""

    item_id: UUID
    qty: int = Field(ge=1)


class PaymentTarget(BaseModel):
    """Exactly one of ``reservation_id`` or ``order_id``."""

    reservation_id: Optional[UUID] = None
    order_id: Optional[UUID] = None

    @model_validator(mode="after")
    def _single_target(self) -> "PaymentTarget":
        if (self.reservation_id is None) == (self.order_id is None):
            raise ValueError("exactly one of reservation_id or order_id is required")
        return self


def parse(model: type[BaseModel], **data) -> BaseModel:
    """Build ``model`` from ``data``; raise :class:`InvalidRequest` on failure."""

    try:
        return model(**data)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        fields = [".".join(str(p) for p in e["loc"]) or "__root__" for e in errors]
        raise InvalidRequest(
            f"invalid {model.__name__}: " + "; ".join(e["msg"] for e in errors),
            details={"fields": ",".join(fields)},
        ) from None


class _View(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TableView(_View):
    id: UUID
    number: int
    capacity: int
    status: TableStatus
    location: Optional[str] = None


class ReservationView(_View):
    id: UUID
    table_id: UUID
    customer_id: str
    reservation_date: date
    start_time: time
    duration_mins: int
    party_size: int
    special_requests: Optional[str] = None
    status: ReservationStatus
    total_amount: Optional[Decimal] = None
    created_at: datetime


class FoodItemView(_View):
    id: UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    category: str
    available: bool
    preparation_mins: Optional[int] = None


class OrderItemView(_View):
    item_id: UUID
    name_snapshot: str
    price_snapshot: Decimal
    qty: int

    @property
    def line_total(self) -> Decimal:
        return self.price_snapshot * self.qty


class OrderView(_View):
    id: UUID
    customer_id: str
    status: OrderStatus
    total_amount: Decimal
    room_number: Optional[str] = None
    created_at: datetime
    items: List[OrderItemView] = []


class PaymentView(_View):
    id: UUID
    customer_id: str
    amount: Decimal
    currency: str
    method: str
    status: PaymentStatus
    gateway_ref: Optional[str] = None
    reservation_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    created_at: datetime
    settled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


__all__ = [
    "BookingRequest",
    "OrderLine",
    "PaymentTarget",
    "parse",
    "TableView",
    "ReservationView",
    "FoodItemView",
    "OrderItemView",
    "OrderView",
    "PaymentView",
]

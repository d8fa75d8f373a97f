"""Domain models and helpers."""

from .order_status import ORDER_TRANSITIONS, OrderStatus
from .payment_status import PAYMENT_TRANSITIONS, PaymentStatus
from .reservation_status import (
    ACTIVE_RESERVATION_STATUSES,
    RESERVATION_TRANSITIONS,
    ReservationStatus,
)
from .table_status import TableStatus
from .transitions import can_transition, check_transition, parse_status
from .windows import Window, windows_overlap

__all__ = [
    "ACTIVE_RESERVATION_STATUSES",
    "ORDER_TRANSITIONS",
    "OrderStatus",
    "PAYMENT_TRANSITIONS",
    "PaymentStatus",
    "RESERVATION_TRANSITIONS",
    "ReservationStatus",
    "TableStatus",
    "Window",
    "can_transition",
    "check_transition",
    "parse_status",
    "windows_overlap",
]

"""Service layer of the engine."""

from .base import Service
from .menu import MenuService
from .orders import OrderWorkflow, order_total
from .payments import PaymentReconciler, SettlementResult
from .scheduler import ReservationScheduler
from .tables import TableRegistry

__all__ = [
    "Service",
    "MenuService",
    "OrderWorkflow",
    "order_total",
    "PaymentReconciler",
    "SettlementResult",
    "ReservationScheduler",
    "TableRegistry",
]

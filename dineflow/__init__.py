"""Availability, order and payment reconciliation engine for a restaurant."""

from .engine import Engine
from .errors import (
    Conflict,
    DineflowError,
    InvalidRequest,
    InvalidTransition,
    LockTimeout,
    NotFound,
    ReconciliationWarning,
    StorageError,
)

__all__ = [
    "Engine",
    "Conflict",
    "DineflowError",
    "InvalidRequest",
    "InvalidTransition",
    "LockTimeout",
    "NotFound",
    "ReconciliationWarning",
    "StorageError",
]

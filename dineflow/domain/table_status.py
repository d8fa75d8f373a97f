"""Dining table status enumeration."""

from __future__ import annotations

from enum import Enum


class TableStatus(str, Enum):
    """Current physical state of a dining table."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"

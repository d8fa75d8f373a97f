"""Error taxonomy raised by the engine.

Every error carries a machine readable ``code`` and a ``details`` mapping
with enough context (entity id, attempted transition, conflicting window)
to diagnose the failure without re-querying storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class DineflowError(Exception):
    """Base class for engine failures."""

    code = "ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: Dict[str, Any] | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.hint = hint

    def to_envelope(self) -> Dict[str, Any]:
        """Return the error in the ``{"ok": false, ...}`` envelope."""
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.hint:
            error["hint"] = self.hint
        if self.details:
            error["details"] = {k: _plain(v) for k, v in self.details.items()}
        return {"ok": False, "error": error}


class NotFound(DineflowError):
    """A referenced entity is absent."""

    code = "NOT_FOUND"


class Conflict(DineflowError):
    """Uniqueness violation or no table free for the requested window."""

    code = "CONFLICT"


class LockTimeout(Conflict):
    """A serialization lock could not be acquired before the deadline."""

    code = "BUSY"


class InvalidRequest(DineflowError, ValueError):
    """Malformed input rejected before any write."""

    code = "INVALID_REQUEST"


class InvalidTransition(DineflowError):
    """A status change violates the state machine."""

    code = "INVALID_TRANSITION"


class StorageError(DineflowError):
    """The storage collaborator failed; the operation was rolled back."""

    code = "STORAGE_ERROR"


@dataclass
class ReconciliationWarning:
    """Non-fatal anomaly reported when a settled payment cannot be applied."""

    payment_id: Any
    reason: str
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "payment_id": _plain(self.payment_id),
            "reason": self.reason,
            "details": {k: _plain(v) for k, v in self.details.items()},
        }


def _plain(value: Any) -> Any:
    """Render ``value`` as a JSON friendly primitive."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    return str(value)


__all__ = [
    "DineflowError",
    "NotFound",
    "Conflict",
    "LockTimeout",
    "InvalidRequest",
    "InvalidTransition",
    "StorageError",
    "ReconciliationWarning",
]

"""Clock abstraction used for reservation windows."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from .config import get_settings


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware datetime."""


class SystemClock:
    """Wall clock in the configured restaurant timezone."""

    def __init__(self, tz: str | None = None) -> None:
        self.tz = ZoneInfo(tz or get_settings().timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock:
    """Clock frozen at ``at``; ``advance`` moves it forward."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=ZoneInfo("UTC"))
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs: float) -> None:
        self._at += timedelta(**kwargs)


def combine(clock: Clock, day: date, at: time) -> datetime:
    """Return ``day`` + ``at`` as an aware datetime in ``clock``'s zone."""
    return datetime.combine(day, at, tzinfo=clock.now().tzinfo)

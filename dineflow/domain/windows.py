"""Half-open reservation windows and overlap arithmetic."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


def windows_overlap(s1: datetime, d1: int, s2: datetime, d2: int) -> bool:
    """Return ``True`` if ``[s1, s1+d1)`` and ``[s2, s2+d2)`` intersect.

    Durations are in minutes. Windows that merely touch (one ends exactly
    when the other starts) do not overlap.
    """

    return s1 < s2 + timedelta(minutes=d2) and s2 < s1 + timedelta(minutes=d1)


@dataclass(frozen=True)
class Window:
    """The interval a reservation occupies on its table."""

    start: datetime
    duration_mins: int

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_mins)

    def overlaps(self, other: "Window") -> bool:
        return windows_overlap(
            self.start, self.duration_mins, other.start, other.duration_mins
        )

    def __str__(self) -> str:
        return f"{self.start.isoformat()}/{self.end.isoformat()}"

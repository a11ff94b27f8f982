"""Temporal validity ranges attached to identity claims and graph edges."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def _ensure_aware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        raise ValueError("Time range values must include timezone information")
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Closed interval in UTC; ``None`` on either side means unbounded."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        start = _ensure_aware(self.start)
        end = _ensure_aware(self.end)
        if start and end and start > end:
            raise ValueError("Time range start must be before end")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def always(cls) -> TimeRange:
        return cls()

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, moment: datetime) -> bool:
        """Return whether ``moment`` falls inside the range (bounds inclusive)."""

        if moment.tzinfo is None:
            raise ValueError("Time range values must include timezone information")
        aware = moment.astimezone(UTC)
        if self.start is not None and aware < self.start:
            return False
        return not (self.end is not None and aware > self.end)

    def overlaps(self, other: TimeRange) -> bool:
        if self.end is not None and other.start is not None and self.end < other.start:
            return False
        return not (other.end is not None and self.start is not None and other.end < self.start)


__all__ = ["Clock", "TimeRange", "utcnow"]

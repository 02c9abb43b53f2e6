"""
Analytics Context

The scope object every analytics computation receives: whose journal,
which calendar window, and what "now" is. Nothing in the analytics
services reads the clock or global state on its own.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional
from uuid import UUID


class InvalidRangeError(ValueError):
    """Raised for windows that cannot be analysed (start after end, too many buckets, unknown granularity)."""


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar window."""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidRangeError(
                f"start date {self.start.isoformat()} is after end date {self.end.isoformat()}"
            )

    @classmethod
    def last_days(cls, days: int, today: date) -> "DateRange":
        """Window of `days` days ending on (and including) today."""
        if days < 1:
            raise InvalidRangeError(f"window must cover at least one day, got {days}")
        return cls(start=today - timedelta(days=days - 1), end=today)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def iter_days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


@dataclass(frozen=True)
class AnalyticsContext:
    user_id: UUID
    date_range: DateRange
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def today(self) -> date:
        return self.now.date()

    @classmethod
    def for_last_days(cls, user_id: UUID, days: int, now: Optional[datetime] = None) -> "AnalyticsContext":
        now = now or datetime.now(timezone.utc)
        return cls(user_id=user_id, date_range=DateRange.last_days(days, now.date()), now=now)


def clamp_days(days: Optional[int], minimum: int, maximum: int, default: Optional[int] = None) -> int:
    """
    Clamp a requested day count into [minimum, maximum].

    A missing value falls back to `default` (or `minimum`) before clamping.
    """
    if days is None:
        days = default if default is not None else minimum
    return max(minimum, min(days, maximum))

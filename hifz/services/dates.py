"""Calendar-day helpers shared by the analytics and weekly review."""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional


def days_between(start: date, end: date) -> int:
    """Number of calendar days from start to end (negative if end is earlier)."""
    return (end - start).days


@dataclass(frozen=True)
class DateRange:
    """Calendar-day range with an inclusive start.

    The end bound is inclusive by default; pass end_inclusive=False for a
    half-open range.
    """
    start: date
    end: date
    end_inclusive: bool = True

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"DateRange end {self.end} is before start {self.start}")

    @property
    def last_day(self) -> date:
        return self.end if self.end_inclusive else self.end - timedelta(days=1)

    @property
    def days(self) -> int:
        """Number of calendar days covered by the range."""
        return max(0, days_between(self.start, self.last_day) + 1)

    def contains(self, day: date) -> bool:
        if self.end_inclusive:
            return self.start <= day <= self.end
        return self.start <= day < self.end

    def iter_days(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def filter(self, records: Iterable) -> List:
        """Keep records whose `record_date` falls inside the range."""
        return [r for r in records if self.contains(r.record_date)]

    @classmethod
    def last_n_days(cls, days: int, today: Optional[date] = None) -> "DateRange":
        """Range of the `days` calendar days ending on (and including) today."""
        if days < 1:
            raise ValueError("days must be at least 1")
        today = today or date.today()
        return cls(today - timedelta(days=days - 1), today)

    @classmethod
    def previous_week(cls, today: Optional[date] = None) -> "DateRange":
        """Most recently completed Sunday-Saturday week before today's week."""
        today = today or date.today()
        # date.weekday(): Monday=0 ... Sunday=6
        days_since_sunday = (today.weekday() + 1) % 7
        this_sunday = today - timedelta(days=days_since_sunday)
        start = this_sunday - timedelta(days=7)
        return cls(start, start + timedelta(days=6))

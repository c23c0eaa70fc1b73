"""Closed calendar-day intervals and the arithmetic built on them.

Every date computation in the package goes through this module. Intervals
are closed on both ends and counted in whole days: ``01/01 - 31/01`` is 31
days. An interval without an ``end`` is open-ended ("continues
indefinitely"); it compares as unbounded but never yields a day count, so
callers must clamp it with :func:`clamp_to_today` before pricing it.

Examples:
    Overlap and difference::

        from datetime import date
        from rental_coverage.intervals import TimeInterval, intersect, subtract

        rental = TimeInterval(date(2025, 1, 1), date(2025, 3, 31))
        bond = TimeInterval(date(2025, 1, 1), date(2025, 2, 28))

        intersect(rental, bond)  # 01/01 - 28/02
        subtract(rental, bond)   # [01/03 - 31/03]
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional

from .errors import MalformedInterval

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class TimeInterval:
    """Closed interval of calendar days.

    Attributes:
        start: First day of the interval.
        end: Last day of the interval, or None when open-ended.
    """

    start: date
    end: Optional[date] = None

    def __post_init__(self):
        if not isinstance(self.start, date):
            raise MalformedInterval(f"Interval start must be a date, got {self.start!r}")
        if self.end is not None and not isinstance(self.end, date):
            raise MalformedInterval(f"Interval end must be a date, got {self.end!r}")
        if self.end is not None and self.start > self.end:
            raise MalformedInterval(
                f"Interval starts after it ends: {self.start.isoformat()} > {self.end.isoformat()}"
            )

    @property
    def is_open_ended(self) -> bool:
        return self.end is None

    def __str__(self) -> str:
        end = self.end.isoformat() if self.end is not None else "..."
        return f"[{self.start.isoformat()} - {end}]"


def day_after(day: date) -> date:
    return day + ONE_DAY


def day_before(day: date) -> date:
    return day - ONE_DAY


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def days_between(earlier: date, later: date) -> int:
    """Signed number of days from ``earlier`` to ``later`` (0 for the same day)."""
    return (later - earlier).days


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of short months."""
    year = day.year + (day.month - 1 + months) // 12
    month = (day.month - 1 + months) % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def _end_or_max(interval: TimeInterval) -> date:
    # An absent end compares as +infinity, never materialized.
    return interval.end if interval.end is not None else date.max


def contains(interval: TimeInterval, day: date) -> bool:
    """True if ``day`` falls inside the interval."""
    return interval.start <= day <= _end_or_max(interval)


def intersect(a: TimeInterval, b: TimeInterval) -> Optional[TimeInterval]:
    """Return the overlap of two intervals, or None if they are disjoint.

    The overlap is open-ended only when both inputs are.
    """
    start = max(a.start, b.start)
    if a.end is None and b.end is None:
        return TimeInterval(start, None)
    end = min(_end_or_max(a), _end_or_max(b))
    if start > end:
        return None
    return TimeInterval(start, end)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return intersect(a, b) is not None


def subtract(a: TimeInterval, b: TimeInterval) -> List[TimeInterval]:
    """Return ``a`` minus its overlap with ``b`` as 0, 1 or 2 intervals."""
    overlap = intersect(a, b)
    if overlap is None:
        return [a]

    pieces: List[TimeInterval] = []
    if a.start < overlap.start:
        pieces.append(TimeInterval(a.start, day_before(overlap.start)))
    if overlap.end is not None:
        if a.end is None:
            pieces.append(TimeInterval(day_after(overlap.end), None))
        elif overlap.end < a.end:
            pieces.append(TimeInterval(day_after(overlap.end), a.end))
    return pieces


def duration_days(interval: TimeInterval) -> int:
    """Inclusive day count of a bounded interval.

    Raises:
        ValueError: If the interval is open-ended; clamp it first.
    """
    if interval.end is None:
        raise ValueError(f"Duration of open-ended interval {interval} is undefined; clamp it first")
    return days_between(interval.start, interval.end) + 1


def clamp_to_today(interval: TimeInterval, today: date) -> Optional[TimeInterval]:
    """Cap an interval at ``today`` for reporting.

    An absent end, or an end after today, becomes today. Returns None when
    the interval has not started yet.
    """
    if interval.start > today:
        return None
    if interval.end is None or interval.end > today:
        return TimeInterval(interval.start, today)
    return interval


def merge_intervals(intervals: Iterable[TimeInterval]) -> List[TimeInterval]:
    """Union of intervals, merging overlapping and touching ones, ordered by start."""
    merged: List[TimeInterval] = []
    for interval in sorted(intervals, key=lambda i: (i.start, _end_or_max(i))):
        if not merged:
            merged.append(interval)
            continue
        last = merged[-1]
        if last.end is None:
            continue
        if interval.start <= day_after(last.end):
            if interval.end is None:
                merged[-1] = TimeInterval(last.start, None)
            elif interval.end > last.end:
                merged[-1] = TimeInterval(last.start, interval.end)
        else:
            merged.append(interval)
    return merged

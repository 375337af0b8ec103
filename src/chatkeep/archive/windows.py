"""
Split an inclusive calendar range into fetch windows.
"""
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional
from dataclasses import dataclass

DAY_START = time(0, 0, 0)
DAY_END = time(23, 59, 59)


@dataclass(frozen=True)
class FetchWindow:
    """Inclusive [start, end] span of wall-clock time."""
    start: datetime
    end: datetime

    @property
    def start_ms(self) -> int:
        """Start bound in epoch milliseconds."""
        return int(self.start.timestamp() * 1000)

    @property
    def end_ms(self) -> int:
        """End bound in epoch milliseconds."""
        return int(self.end.timestamp() * 1000)

    @property
    def days(self) -> int:
        """Number of calendar days the window touches."""
        return (self.end.date() - self.start.date()).days + 1

    def contains(self, epoch_seconds: int) -> bool:
        """True when a send time falls inside the window."""
        return self.start_ms <= epoch_seconds * 1000 <= self.end_ms

    def __str__(self) -> str:
        return f"{self.start:%Y-%m-%d}..{self.end:%Y-%m-%d}"


def _window(first: date, last: date, tz: Optional[tzinfo]) -> FetchWindow:
    return FetchWindow(
        start=datetime.combine(first, DAY_START, tzinfo=tz),
        end=datetime.combine(last, DAY_END, tzinfo=tz),
    )


def single_window(range_start: date, range_end: date, tz: Optional[tzinfo] = None) -> List[FetchWindow]:
    """The one implicit window covering the whole range (empty when reversed)."""
    if range_start > range_end:
        return []
    return [_window(range_start, range_end, tz)]


def split(
    range_start: date,
    range_end: date,
    max_span_days: int = 30,
    tz: Optional[tzinfo] = None,
) -> List[FetchWindow]:
    """Divide [range_start, range_end] into contiguous windows of whole days.

    Each window spans at most `max_span_days` days; the last one is cut at
    `range_end` (normalized to 23:59:59). A reversed range yields no windows,
    which callers must treat as invalid input. `tz=None` keeps local time.
    """
    if max_span_days < 1:
        raise ValueError(f"max_span_days must be >= 1, got {max_span_days}")

    windows: List[FetchWindow] = []
    cursor = range_start
    while cursor <= range_end:
        last = min(cursor + timedelta(days=max_span_days - 1), range_end)
        windows.append(_window(cursor, last, tz))
        cursor = last + timedelta(days=1)
    return windows

"""Turn the dashboard's range selector into a concrete date window."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

RANGE_PRESETS = ("7", "30", "90", "all", "custom")
DEFAULT_RANGE = "30"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ONE_DAY = timedelta(days=1)


def parse_range(raw: str | None) -> str:
    return raw if raw in RANGE_PRESETS else DEFAULT_RANGE


def parse_date(raw: str | None) -> str | None:
    """Return ``raw`` if it is a real ``YYYY-MM-DD`` date, else None."""
    if not raw or not _DATE_RE.match(raw):
        return None
    try:
        date.fromisoformat(raw)
    except ValueError:
        return None
    return raw


def _midnight(day: date | None) -> datetime | None:
    if day is None:
        return None
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[start, end)`` interval of UTC calendar days; ``None`` bounds are open."""

    start: date | None = None
    end: date | None = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def start_at(self) -> datetime | None:
        return _midnight(self.start)

    @property
    def end_at(self) -> datetime | None:
        return _midnight(self.end)

    def contains_date(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day >= self.end:
            return False
        return True

    def previous(self) -> "TimeWindow":
        """The equally long window that ends where this one starts."""
        if not self.is_bounded:
            return TimeWindow()
        return TimeWindow(start=self.start - (self.end - self.start), end=self.start)


def resolve_window(
    range_: str,
    start_date: str | None = None,
    end_date: str | None = None,
    today: date | None = None,
) -> TimeWindow:
    """Resolve a range preset (or custom pair) to a window.

    Bad custom input degrades to an unbounded window instead of raising, so
    the dashboard still renders.
    """
    if range_ == "all":
        return TimeWindow()

    if range_ == "custom":
        if not parse_date(start_date) or not parse_date(end_date):
            return TimeWindow()
        first = date.fromisoformat(start_date)
        last = date.fromisoformat(end_date)
        if first > last:
            return TimeWindow()
        return TimeWindow(start=first, end=last + _ONE_DAY)

    today = today or datetime.now(timezone.utc).date()
    days = max(1, int(parse_range(range_)))
    return TimeWindow(start=today - (days - 1) * _ONE_DAY, end=today + _ONE_DAY)

"""Typed rows handed out by the storage adapter.

Everything here is already normalized: datetimes are timezone-aware UTC,
budgets are floats, display names are resolved. Analytics code never sees a
raw database row.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

DEFAULT_DISPLAY_NAME = "Użytkownik"
COMPLETED_STATUS = "completed"


@dataclass(frozen=True)
class BoardRow:
    id: str
    title: str
    group_id: str


@dataclass(frozen=True)
class MemberRow:
    id: str
    name: str
    avatar_url: str | None = None


@dataclass(frozen=True)
class PostRow:
    id: str
    board_id: str
    author_id: str
    content: str
    created_at: datetime


@dataclass(frozen=True)
class CommentRow:
    id: str
    post_id: str
    board_id: str
    author_id: str
    content: str
    created_at: datetime


@dataclass(frozen=True)
class MentionRow:
    post_id: str
    board_id: str
    mentioned_user_id: str
    created_at: datetime


@dataclass(frozen=True)
class SessionRow:
    user_id: str
    session_start: datetime
    session_end: datetime | None = None
    last_seen_at: datetime | None = None
    duration_seconds: float | None = None

    def online_seconds(self, now: datetime) -> float:
        """Explicit duration if recorded, else end (or last seen, capped at now) minus start."""
        if self.duration_seconds is not None:
            return max(0.0, float(self.duration_seconds))
        end = self.session_end
        if end is None:
            end = min(now, self.last_seen_at or self.session_start)
        return max(0.0, (end - self.session_start).total_seconds())


@dataclass(frozen=True)
class TripRow:
    """A board viewed as a trip: status, destination, dates and budget."""

    id: str
    created_by: str
    status: str | None
    location: str | None
    start_date: date | None
    end_date: date | None
    budget: float | None
    created_at: datetime

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED_STATUS

    @property
    def completed_on(self) -> date:
        return self.end_date or self.created_at.date()

    @property
    def trip_days(self) -> int:
        start = self.start_date or self.end_date
        end = self.end_date or self.start_date
        if start is None or end is None:
            return 1
        return max(1, (end - start).days + 1)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

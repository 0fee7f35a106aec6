"""Read interface the analytics engine needs from the content/membership store.

The hosting service owns the concrete store (and its connection pool) and
injects it; tests use the SQLite-backed implementation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from tripstats.store.rows import (
    BoardRow,
    CommentRow,
    MemberRow,
    MentionRow,
    PostRow,
    SessionRow,
    TripRow,
)


@runtime_checkable
class StatsStore(Protocol):
    """Read-only queries consumed by the metric readers.

    ``start``/``end`` are aware UTC datetimes forming a half-open interval;
    ``None`` leaves that side unbounded. Empty ``board_ids`` always yield no
    rows.
    """

    async def has_sessions(self) -> bool:
        """Whether per-user session rows exist in this deployment."""
        ...

    async def list_accessible_boards(self, user_id: str, board_id: str | None = None) -> list[BoardRow]:
        """Non-archived boards the user is a member of, optionally just ``board_id``."""
        ...

    async def list_group_members(self, group_ids: Sequence[str]) -> list[MemberRow]:
        ...

    async def get_profiles(self, user_ids: Sequence[str]) -> dict[str, MemberRow]:
        ...

    async def list_posts(
        self,
        board_ids: Sequence[str],
        start: datetime | None,
        end: datetime | None,
        author_id: str | None = None,
    ) -> list[PostRow]:
        ...

    async def list_comments(
        self,
        board_ids: Sequence[str],
        start: datetime | None,
        end: datetime | None,
        author_id: str | None = None,
    ) -> list[CommentRow]:
        ...

    async def comment_counts(self, post_ids: Sequence[str]) -> dict[str, int]:
        """Total comments per post, regardless of when they were written."""
        ...

    async def list_mentions(
        self,
        board_ids: Sequence[str],
        start: datetime | None,
        end: datetime | None,
        mentioned_user_id: str | None = None,
    ) -> list[MentionRow]:
        ...

    async def list_trip_boards(self, board_ids: Sequence[str]) -> list[TripRow]:
        ...

    async def list_sessions(
        self,
        start: datetime | None,
        end: datetime | None,
        user_ids: Sequence[str] | None = None,
    ) -> list[SessionRow]:
        """Sessions started inside the window; ``user_ids=None`` means every user."""
        ...

"""Metric readers.

Every reader is an independent, read-only coroutine over one scope and one
window, so the composer can run them all at once. Session readers take the
per-request ``sessions`` capability flag and return zero/empty without
touching the store when presence data is not available.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from statistics import mean
from typing import Sequence

from tripstats.analytics.trend import count_by_day, sum_by_day
from tripstats.analytics.window import TimeWindow
from tripstats.models import EngagingPost, GroupTrips, SoloTrips
from tripstats.store.base import StatsStore
from tripstats.store.rows import TripRow

EXCERPT_LENGTH = 140


@dataclass(frozen=True)
class SessionTotals:
    total_seconds: float = 0.0
    avg_seconds: float = 0.0
    sessions_count: int = 0


def _most_common_label(values: Sequence[str]) -> str | None:
    """Most frequent value, alphabetical on ties."""
    counts = Counter(values)
    if not counts:
        return None
    return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]


def _completed_in(trips: Sequence[TripRow], window: TimeWindow) -> list[TripRow]:
    return [t for t in trips if t.is_completed and window.contains_date(t.completed_on)]


def _locations(trips: Sequence[TripRow]) -> list[str]:
    return [t.location for t in trips if t.location and t.location.strip()]


# ── posts & comments ──────────────────────────────────────────────────────────

async def count_posts(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> int:
    return len(await store.list_posts(board_ids, window.start_at, window.end_at, author_id))


async def count_comments(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> int:
    return len(await store.list_comments(board_ids, window.start_at, window.end_at, author_id))


async def posts_by_day(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> dict[date, int]:
    posts = await store.list_posts(board_ids, window.start_at, window.end_at, author_id)
    return count_by_day(p.created_at for p in posts)


async def comments_by_day(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> dict[date, int]:
    comments = await store.list_comments(board_ids, window.start_at, window.end_at, author_id)
    return count_by_day(c.created_at for c in comments)


async def post_timestamps(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> list[datetime]:
    return [p.created_at for p in await store.list_posts(board_ids, window.start_at, window.end_at, author_id)]


async def comment_timestamps(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> list[datetime]:
    return [c.created_at for c in await store.list_comments(board_ids, window.start_at, window.end_at, author_id)]


async def posts_by_author(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> Counter:
    """Post counts keyed by author, in order of each author's first post."""
    posts = await store.list_posts(board_ids, window.start_at, window.end_at, author_id)
    return Counter(p.author_id for p in posts)


async def comments_by_author(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> Counter:
    comments = await store.list_comments(board_ids, window.start_at, window.end_at, author_id)
    return Counter(c.author_id for c in comments)


async def texts(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> list[str]:
    """Post bodies followed by comment bodies, for emoji tallies."""
    posts = await store.list_posts(board_ids, window.start_at, window.end_at, author_id)
    comments = await store.list_comments(board_ids, window.start_at, window.end_at, author_id)
    return [p.content for p in posts] + [c.content for c in comments]


async def average_comments_on_posts(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str
) -> float:
    """Comments received per post; a post without replies still weighs one.

    Replies are counted over the post's whole life, not just the window.
    """
    posts = await store.list_posts(board_ids, window.start_at, window.end_at, author_id)
    if not posts:
        return 0.0
    counts = await store.comment_counts([p.id for p in posts])
    replies = [counts.get(p.id, 0) for p in posts]
    return round(sum(replies) / sum(max(1, n) for n in replies), 2)


async def most_engaging_post(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow
) -> EngagingPost | None:
    posts = await store.list_posts(board_ids, window.start_at, window.end_at)
    if not posts:
        return None
    counts = await store.comment_counts([p.id for p in posts])
    best = max(posts, key=lambda p: (counts.get(p.id, 0), p.created_at))
    return EngagingPost(
        post_id=best.id,
        excerpt=best.content[:EXCERPT_LENGTH],
        comments_count=counts.get(best.id, 0),
    )


async def most_active_poster(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, author_id: str | None = None
) -> str | None:
    authors = await posts_by_author(store, board_ids, window, author_id)
    if not authors:
        return None
    top_id, _ = authors.most_common(1)[0]
    profiles = await store.get_profiles([top_id])
    return profiles[top_id].name if top_id in profiles else None


# ── mentions ──────────────────────────────────────────────────────────────────

async def count_mentions_received(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, user_id: str
) -> int:
    return len(await store.list_mentions(board_ids, window.start_at, window.end_at, user_id))


async def most_mentioned_user(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow
) -> str | None:
    mentions = await store.list_mentions(board_ids, window.start_at, window.end_at)
    if not mentions:
        return None
    counts = Counter(m.mentioned_user_id for m in mentions)
    profiles = await store.get_profiles(list(counts))
    ranked = [(n, profiles[uid].name) for uid, n in counts.items() if uid in profiles]
    if not ranked:
        return None
    return min(ranked, key=lambda item: (-item[0], item[1]))[1]


# ── trips ─────────────────────────────────────────────────────────────────────

async def count_completed_trips(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, creator_id: str
) -> int:
    trips = [t for t in await store.list_trip_boards(board_ids) if t.created_by == creator_id]
    return len(_completed_in(trips, window))


async def count_group_trips(store: StatsStore, board_ids: Sequence[str]) -> int:
    """Completed trips on every accessible board, whatever the window."""
    return sum(1 for t in await store.list_trip_boards(board_ids) if t.is_completed)


async def solo_trip_summary(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow, user_id: str
) -> SoloTrips:
    own = [t for t in await store.list_trip_boards(board_ids) if t.created_by == user_id]
    done = _completed_in(own, window)
    budgets = [t.budget for t in done if t.budget is not None]
    return SoloTrips(
        completed_trips=len(done),
        total_trip_days=sum(t.trip_days for t in done),
        # destinations are taken from every board the user created
        most_frequent_direction=_most_common_label(_locations(own)),
        longest_trip_days=max((t.trip_days for t in done), default=0),
        average_budget=round(mean(budgets), 2) if budgets else None,
    )


async def group_trip_summary(
    store: StatsStore, board_ids: Sequence[str], window: TimeWindow
) -> GroupTrips:
    trips = await store.list_trip_boards(board_ids)
    done = _completed_in(trips, window)

    traveler = None
    creators = Counter(t.created_by for t in trips)
    if creators:
        top_id, _ = creators.most_common(1)[0]
        profiles = await store.get_profiles([top_id])
        traveler = profiles[top_id].name if top_id in profiles else None

    return GroupTrips(
        total_trips=len(done),
        total_trip_days=sum(t.trip_days for t in done),
        most_visited_place=_most_common_label(_locations(trips)),
        average_trip_days=round(mean(t.trip_days for t in done), 2) if done else 0.0,
        most_active_traveler=traveler,
    )


# ── sessions ──────────────────────────────────────────────────────────────────

async def session_totals(
    store: StatsStore,
    window: TimeWindow,
    user_ids: Sequence[str] | None,
    sessions: bool,
    now: datetime,
) -> SessionTotals:
    if not sessions:
        return SessionTotals()
    durations = [s.online_seconds(now) for s in await store.list_sessions(window.start_at, window.end_at, user_ids)]
    if not durations:
        return SessionTotals()
    return SessionTotals(
        total_seconds=sum(durations),
        avg_seconds=round(mean(durations), 2),
        sessions_count=len(durations),
    )


async def online_seconds_by_day(
    store: StatsStore,
    window: TimeWindow,
    user_ids: Sequence[str] | None,
    sessions: bool,
    now: datetime,
) -> dict[date, float]:
    if not sessions:
        return {}
    rows = await store.list_sessions(window.start_at, window.end_at, user_ids)
    return sum_by_day((s.session_start, s.online_seconds(now)) for s in rows)


async def online_seconds_by_user(
    store: StatsStore,
    window: TimeWindow,
    user_ids: Sequence[str] | None,
    sessions: bool,
    now: datetime,
) -> dict[str, float]:
    if not sessions:
        return {}
    totals: dict[str, float] = {}
    for s in await store.list_sessions(window.start_at, window.end_at, user_ids):
        totals[s.user_id] = totals.get(s.user_id, 0.0) + s.online_seconds(now)
    return totals


async def session_starts(
    store: StatsStore,
    window: TimeWindow,
    user_ids: Sequence[str] | None,
    sessions: bool,
) -> list[datetime]:
    if not sessions:
        return []
    return [s.session_start for s in await store.list_sessions(window.start_at, window.end_at, user_ids)]

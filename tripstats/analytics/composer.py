"""Build the solo + group stats report for one request.

Window, scope and the session capability are resolved first; every reader
then runs concurrently inside one ``TaskGroup``. The first reader to fail
cancels the rest and fails the whole report, so callers never see a report
that mixes computed and placeholder figures.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Mapping

from tripstats.analytics import readers
from tripstats.analytics.delta import percent_change
from tripstats.analytics.emoji import top_emojis
from tripstats.analytics.heatmap import bin_heatmap
from tripstats.analytics.ranking import UserActivity, rank_users
from tripstats.analytics.scope import ALL, Scope, parse_id, resolve_scope
from tripstats.analytics.trend import build_trend
from tripstats.analytics.window import TimeWindow, parse_date, parse_range, resolve_window
from tripstats.errors import StatsError, StatsTimeoutError
from tripstats.models import (
    BoardOption,
    Filters,
    GroupInteractions,
    GroupKpi,
    GroupStats,
    Options,
    SoloDeltas,
    SoloEngagement,
    SoloKpi,
    SoloOnline,
    SoloStats,
    StatsResponse,
    UserOption,
)
from tripstats.store.base import StatsStore

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatsRequest:
    """Normalized query parameters; build it with :meth:`from_params`."""

    user_id: str
    mode: str = "solo"
    range: str = "30"
    board_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    target_user_id: str | None = None

    @classmethod
    def from_params(
        cls,
        user_id: str,
        mode: str | None = None,
        range_: str | None = None,
        board_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        target_user_id: str | None = None,
    ) -> "StatsRequest":
        # bad filter values fall back to defaults, they are never rejected
        return cls(
            user_id=user_id,
            mode="group" if (mode or "").lower() == "group" else "solo",
            range=parse_range(range_),
            board_id=parse_id(board_id),
            start_date=parse_date(start_date),
            end_date=parse_date(end_date),
            target_user_id=parse_id(target_user_id),
        )

    @property
    def filters(self) -> Filters:
        return Filters(
            range=self.range,
            board_id=self.board_id or ALL,
            start_date=self.start_date,
            end_date=self.end_date,
            user_id=self.target_user_id or ALL,
        )


def _first_error(group: BaseExceptionGroup) -> BaseException:
    flat: list[BaseException] = []

    def _walk(eg: BaseExceptionGroup) -> None:
        for exc in eg.exceptions:
            if isinstance(exc, BaseExceptionGroup):
                _walk(exc)
            else:
                flat.append(exc)

    _walk(group)
    return next((e for e in flat if isinstance(e, StatsError)), flat[0])


async def _run_all(jobs: Mapping[str, Awaitable[Any]]) -> dict[str, Any]:
    async with asyncio.TaskGroup() as tg:
        tasks = {name: tg.create_task(job) for name, job in jobs.items()}
    return {name: task.result() for name, task in tasks.items()}


def _readers(
    store: StatsStore, scope: Scope, window: TimeWindow, sessions: bool, now: datetime
) -> dict[str, Awaitable[Any]]:
    ids = scope.board_ids
    me = scope.user_id
    target = scope.target_user_id
    members = scope.member_ids
    jobs: dict[str, Awaitable[Any]] = {
        # solo
        "solo_posts": readers.count_posts(store, ids, window, me),
        "solo_comments": readers.count_comments(store, ids, window, me),
        "solo_completed": readers.count_completed_trips(store, ids, window, me),
        "solo_trips": readers.solo_trip_summary(store, ids, window, me),
        "solo_mentions": readers.count_mentions_received(store, ids, window, me),
        "solo_avg_comments": readers.average_comments_on_posts(store, ids, window, me),
        "solo_posts_by_day": readers.posts_by_day(store, ids, window, me),
        "solo_comments_by_day": readers.comments_by_day(store, ids, window, me),
        "solo_online_by_day": readers.online_seconds_by_day(store, window, [me], sessions, now),
        "solo_online": readers.session_totals(store, window, [me], sessions, now),
        "solo_texts": readers.texts(store, ids, window, me),
        # group
        "group_posts": readers.count_posts(store, ids, window, target),
        "group_comments": readers.count_comments(store, ids, window, target),
        "group_trip_count": readers.count_group_trips(store, ids),
        "group_active_user": readers.most_active_poster(store, ids, window, target),
        "group_online": readers.session_totals(store, window, members, sessions, now),
        "group_posts_by_author": readers.posts_by_author(store, ids, window, target),
        "group_comments_by_author": readers.comments_by_author(store, ids, window, target),
        "group_online_by_user": readers.online_seconds_by_user(store, window, members, sessions, now),
        "group_post_times": readers.post_timestamps(store, ids, window, target),
        "group_comment_times": readers.comment_timestamps(store, ids, window, target),
        "group_session_starts": readers.session_starts(store, window, members, sessions),
        "group_trips": readers.group_trip_summary(store, ids, window),
        "group_mentioned": readers.most_mentioned_user(store, ids, window),
        "group_engaging": readers.most_engaging_post(store, ids, window),
        "group_texts": readers.texts(store, ids, window, target),
    }
    if window.is_bounded:
        prev = window.previous()
        jobs["solo_posts_prev"] = readers.count_posts(store, ids, prev, me)
        jobs["solo_comments_prev"] = readers.count_comments(store, ids, prev, me)
        jobs["solo_completed_prev"] = readers.count_completed_trips(store, ids, prev, me)
    return jobs


def _activity(posts: Counter, comments: Counter, online: Mapping[str, float]) -> list[UserActivity]:
    user_ids = dict.fromkeys([*posts, *comments, *online])
    return [
        UserActivity(
            user_id=uid,
            posts=posts.get(uid, 0),
            comments=comments.get(uid, 0),
            online_seconds=online.get(uid, 0.0),
        )
        for uid in user_ids
    ]


def _solo(r: Mapping[str, Any]) -> SoloStats:
    posts, comments, completed = r["solo_posts"], r["solo_comments"], r["solo_completed"]
    # an unbounded window has an unbounded "previous" window: same figures, 0% change
    prev_posts = r.get("solo_posts_prev", posts)
    prev_comments = r.get("solo_comments_prev", comments)
    prev_completed = r.get("solo_completed_prev", completed)
    online = r["solo_online"]
    trend = build_trend(r["solo_posts_by_day"], r["solo_comments_by_day"], r["solo_online_by_day"])
    return SoloStats(
        kpi=SoloKpi(
            posts=posts,
            comments=comments,
            online_seconds=int(online.total_seconds),
            completed_trips=completed,
            deltas=SoloDeltas(
                posts=percent_change(posts, prev_posts),
                comments=percent_change(comments, prev_comments),
                # not compared across windows; the dashboard has always shown 0 here
                online_seconds=0.0,
                completed_trips=percent_change(completed, prev_completed),
            ),
        ),
        online=SoloOnline(
            total_seconds=int(online.total_seconds),
            avg_session_seconds=online.avg_seconds,
            sessions_count=online.sessions_count,
            trend=trend,
        ),
        trips=r["solo_trips"],
        engagement=SoloEngagement(
            mentions_received=r["solo_mentions"],
            reactions_received=0,
            average_comments_on_posts=r["solo_avg_comments"],
            top_emojis=top_emojis(r["solo_texts"]),
        ),
        activity_trend=trend,
    )


def _group(r: Mapping[str, Any], scope: Scope) -> GroupStats:
    posts, comments = r["group_posts"], r["group_comments"]
    activity = _activity(r["group_posts_by_author"], r["group_comments_by_author"], r["group_online_by_user"])
    return GroupStats(
        kpi=GroupKpi(
            posts=posts,
            comments=comments,
            online_seconds=int(r["group_online"].total_seconds),
            group_trips=r["group_trip_count"],
            most_active_user=r["group_active_user"],
        ),
        ranking=rank_users(activity, {u.id: u for u in scope.users}),
        heatmap=bin_heatmap(r["group_post_times"], r["group_comment_times"], r["group_session_starts"]),
        trips=r["group_trips"],
        interactions=GroupInteractions(
            top_emojis=top_emojis(r["group_texts"]),
            most_mentioned_user=r["group_mentioned"],
            average_comments_per_post=round(comments / posts, 2) if posts else 0.0,
            most_engaging_post=r["group_engaging"],
        ),
    )


async def build_stats(
    store: StatsStore,
    request: StatsRequest,
    now: datetime | None = None,
    timeout: float | None = None,
) -> StatsResponse:
    """Compute both report bodies; ``request.mode`` is only echoed back.

    Raises StatsTimeoutError past ``timeout`` seconds and re-raises the first
    reader failure (StorageUnavailableError for a dead store).
    """
    now = now or datetime.now(timezone.utc)
    window = resolve_window(request.range, request.start_date, request.end_date, today=now.date())
    started = time.perf_counter()

    try:
        async with asyncio.timeout(timeout):
            async with asyncio.TaskGroup() as tg:
                sessions_task = tg.create_task(store.has_sessions())
                scope_task = tg.create_task(
                    resolve_scope(store, request.user_id, request.board_id, request.target_user_id)
                )
            sessions, scope = sessions_task.result(), scope_task.result()
            _log.debug("window=%s..%s sessions=%s", window.start, window.end, sessions)
            results = await _run_all(_readers(store, scope, window, sessions, now))
    except TimeoutError as exc:
        raise StatsTimeoutError(f"stats not ready after {timeout}s") from exc
    except ExceptionGroup as eg:
        raise _first_error(eg) from eg

    response = StatsResponse(
        mode=request.mode,
        filters=request.filters,
        options=Options(
            boards=[BoardOption(id=b.id, title=b.title) for b in scope.boards],
            users=[UserOption(id=u.id, name=u.name, avatar_url=u.avatar_url) for u in scope.users],
        ),
        solo=_solo(results),
        group=_group(results, scope),
    )
    _log.info(
        "stats user=%s range=%s board=%s built in %.1f ms",
        request.user_id,
        request.range,
        request.board_id or ALL,
        (time.perf_counter() - started) * 1000,
    )
    return response

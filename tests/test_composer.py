"""End-to-end tests for building a stats report against a seeded SQLite store."""
import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from tripstats.analytics.composer import StatsRequest, build_stats
from tripstats.errors import StatsTimeoutError, StorageUnavailableError
from tripstats.store import schema
from tripstats.store.sql import SQLStatsStore

from conftest import NOW, insert, naive, new_id, seed_group

pytestmark = pytest.mark.asyncio


async def _seed_conversation(engine):
    """Ala posts today and three days ago; Olek replies to today's post."""
    me, other = new_id(), new_id()
    _, board_id = await seed_group(engine, (me, "Ala"), (other, "Olek"))
    today_post, older_post = new_id(), new_id()
    await insert(
        engine,
        schema.posts,
        {"id": older_post, "board_id": board_id, "author_id": me, "content": "🎉 again",
         "created_at": naive(NOW - timedelta(days=3))},
        {"id": today_post, "board_id": board_id, "author_id": me, "content": "Great 🎉🎉 trip",
         "created_at": naive(NOW - timedelta(hours=1))},
    )
    await insert(
        engine,
        schema.comments,
        {"id": new_id(), "post_id": today_post, "board_id": board_id, "author_id": other,
         "content": "😀", "created_at": naive(NOW - timedelta(minutes=30))},
    )
    return me, other, board_id, today_post


async def test_solo_report_for_a_week(engine):
    me, _, _, _ = await _seed_conversation(engine)
    report = await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me, range_="7"), now=NOW)

    assert report.mode == "solo"
    assert report.solo.kpi.posts == 2
    assert report.solo.kpi.comments == 0
    assert len(report.solo.activity_trend) == 2
    assert [p.date for p in report.solo.activity_trend] == ["2026-03-15", "2026-03-18"]
    assert report.solo.engagement.average_comments_on_posts == 0.5
    assert report.solo.engagement.reactions_received == 0
    assert [(e.emoji, e.count) for e in report.solo.engagement.top_emojis] == [("🎉", 3)]
    # nothing in the previous week
    assert report.solo.kpi.deltas.posts == 100
    assert report.solo.kpi.deltas.online_seconds == 0


async def test_group_report_for_a_week(engine):
    me, other, board_id, today_post = await _seed_conversation(engine)
    report = await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me, range_="7"), now=NOW)
    group = report.group

    assert (group.kpi.posts, group.kpi.comments) == (2, 1)
    assert group.kpi.most_active_user == "Ala"
    assert [(r.name, r.score) for r in group.ranking] == [("Ala", 6), ("Olek", 2)]
    assert group.interactions.average_comments_per_post == 0.5
    assert group.interactions.most_engaging_post.post_id == today_post
    assert group.interactions.most_engaging_post.comments_count == 1
    assert [(e.emoji, e.count) for e in group.interactions.top_emojis] == [("🎉", 3), ("😀", 1)]
    # Wednesday 11:00 and 11:30 UTC, Sunday 12:00 UTC
    assert [(c.day_of_week, c.hour, c.value) for c in group.heatmap] == [(0, 12, 1), (3, 11, 2)]

    assert [b.id for b in report.options.boards] == [board_id]
    assert [u.name for u in report.options.users] == ["Ala", "Olek"]
    assert report.filters.board_id == "all"
    assert report.filters.user_id == "all"


async def test_group_figures_narrow_to_one_user(engine):
    me, other, _, _ = await _seed_conversation(engine)
    req = StatsRequest.from_params(me, mode="group", range_="7", target_user_id=other)
    report = await build_stats(SQLStatsStore(engine), req, now=NOW)

    assert report.mode == "group"
    assert report.filters.user_id == other
    assert (report.group.kpi.posts, report.group.kpi.comments) == (0, 1)
    # solo figures still belong to the caller
    assert report.solo.kpi.posts == 2


async def test_unbounded_range_has_zero_deltas(engine):
    me, _, _, _ = await _seed_conversation(engine)
    report = await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me, range_="all"), now=NOW)
    assert report.solo.kpi.posts == 2
    assert report.solo.kpi.deltas.posts == 0


async def test_inaccessible_board_gives_empty_report(engine):
    me, _, _, _ = await _seed_conversation(engine)
    req = StatsRequest.from_params(me, range_="7", board_id=new_id())
    report = await build_stats(SQLStatsStore(engine), req, now=NOW)

    assert report.options.boards == []
    assert report.solo.kpi.posts == 0
    assert report.group.kpi.posts == 0
    assert report.group.ranking == []
    assert report.group.interactions.most_engaging_post is None


async def test_malformed_filters_fall_back_to_defaults(engine):
    me, _, _, _ = await _seed_conversation(engine)
    req = StatsRequest.from_params(me, mode="weird", range_="365", board_id="not-a-uuid", target_user_id="x")
    report = await build_stats(SQLStatsStore(engine), req, now=NOW)

    assert report.mode == "solo"
    assert report.filters.range == "30"
    assert report.filters.board_id == "all"
    assert report.filters.user_id == "all"
    assert report.solo.kpi.posts == 2


async def test_online_time_from_sessions(engine):
    me, other, _, _ = await _seed_conversation(engine)
    await insert(
        engine,
        schema.user_sessions,
        {"id": new_id(), "user_id": me, "session_start": naive(NOW - timedelta(hours=3)),
         "session_end": naive(NOW - timedelta(hours=2)), "last_seen_at": None, "duration_seconds": None},
        {"id": new_id(), "user_id": me, "session_start": naive(NOW - timedelta(hours=1)),
         "session_end": None, "last_seen_at": None, "duration_seconds": 600.0},
        {"id": new_id(), "user_id": other, "session_start": naive(NOW - timedelta(minutes=10)),
         "session_end": None, "last_seen_at": naive(NOW - timedelta(minutes=5)), "duration_seconds": None},
        # not a co-member: never counted
        {"id": new_id(), "user_id": new_id(), "session_start": naive(NOW - timedelta(hours=1)),
         "session_end": None, "last_seen_at": None, "duration_seconds": 9999.0},
    )
    report = await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me, range_="7"), now=NOW)

    online = report.solo.online
    assert (online.total_seconds, online.sessions_count, online.avg_session_seconds) == (4200, 2, 2100.0)
    assert report.solo.kpi.online_seconds == 4200
    assert report.solo.activity_trend[-1].online_seconds == 4200
    assert report.group.kpi.online_seconds == 4500
    # 2 posts and 4200 s online
    assert report.group.ranking[0].score == 426
    # Wed 11:00 holds a post, a comment and two session starts; the outsider's start is not binned
    assert [(c.day_of_week, c.hour, c.value) for c in report.group.heatmap] == [(0, 12, 1), (3, 9, 1), (3, 11, 4)]


async def test_missing_sessions_table_zeroes_online_figures(engine_without_sessions):
    me, _, _, _ = await _seed_conversation(engine_without_sessions)
    report = await build_stats(
        SQLStatsStore(engine_without_sessions), StatsRequest.from_params(me, range_="7"), now=NOW
    )
    assert report.solo.kpi.posts == 2
    assert report.solo.online.total_seconds == 0
    assert report.solo.online.sessions_count == 0
    assert report.group.kpi.online_seconds == 0


async def test_trip_figures(engine):
    me, other = new_id(), new_id()
    group_id, board_id = await seed_group(
        engine,
        (me, "Ala"),
        (other, "Olek"),
        board_status="completed",
        location="Zakopane",
        start_date=date(2026, 3, 10),
        end_date=date(2026, 3, 14),
        budget="1 200 zł",
    )
    planned = new_id()
    await insert(
        engine,
        schema.boards,
        {"id": planned, "group_id": group_id, "title": "Hel", "created_by": me, "status": "planning",
         "location": "Zakopane", "created_at": naive(NOW)},
    )
    await insert(engine, schema.board_members, {"board_id": planned, "user_id": me})
    report = await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me, range_="7"), now=NOW)

    trips = report.solo.trips
    assert trips.completed_trips == 1
    assert trips.total_trip_days == 5
    assert trips.longest_trip_days == 5
    assert trips.most_frequent_direction == "Zakopane"
    assert trips.average_budget == 1200.0
    assert report.solo.kpi.completed_trips == 1

    assert report.group.kpi.group_trips == 1
    assert report.group.trips.total_trips == 1
    assert report.group.trips.average_trip_days == 5.0
    assert report.group.trips.most_visited_place == "Zakopane"
    assert report.group.trips.most_active_traveler == "Ala"


async def test_storage_failure_fails_the_whole_report(engine):
    me, _, _, _ = await _seed_conversation(engine)
    with patch.object(SQLStatsStore, "list_posts", AsyncMock(side_effect=StorageUnavailableError("down"))):
        with pytest.raises(StorageUnavailableError):
            await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me), now=NOW)


async def test_slow_store_times_out(engine):
    me, _, _, _ = await _seed_conversation(engine)

    async def _stall(*args, **kwargs):
        await asyncio.sleep(5)
        return []

    with patch.object(SQLStatsStore, "list_posts", _stall):
        with pytest.raises(StatsTimeoutError):
            await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me), now=NOW, timeout=0.1)


async def test_mentions(engine):
    me, other, board_id, today_post = await _seed_conversation(engine)
    await insert(
        engine,
        schema.post_mentions,
        {"post_id": today_post, "mentioned_user_id": other, "board_id": board_id,
         "created_at": naive(NOW - timedelta(hours=1))},
        {"post_id": today_post, "mentioned_user_id": me, "board_id": board_id,
         "created_at": naive(NOW - timedelta(hours=1))},
        # outside the week
        {"post_id": new_id(), "mentioned_user_id": other, "board_id": board_id,
         "created_at": naive(NOW - timedelta(days=20))},
    )
    report = await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me, range_="7"), now=NOW)

    assert report.solo.engagement.mentions_received == 1
    # one mention each inside the window: tie goes to the name first in order
    assert report.group.interactions.most_mentioned_user == "Ala"


async def test_deltas_against_the_previous_week(engine):
    me, other = new_id(), new_id()
    group_id, board_id = await seed_group(
        engine, (me, "Ala"), (other, "Olek"), board_status="completed", end_date=date(2026, 3, 14)
    )
    for end_date in (date(2026, 3, 6), date(2026, 3, 8)):
        old_trip = new_id()
        await insert(
            engine,
            schema.boards,
            {"id": old_trip, "group_id": group_id, "title": "Hel", "created_by": me, "status": "completed",
             "end_date": end_date, "created_at": naive(NOW - timedelta(days=20))},
        )
        await insert(engine, schema.board_members, {"board_id": old_trip, "user_id": me})
    await insert(
        engine,
        schema.posts,
        {"id": new_id(), "board_id": board_id, "author_id": me, "content": "now",
         "created_at": naive(NOW - timedelta(hours=1))},
        *(
            {"id": new_id(), "board_id": board_id, "author_id": me, "content": "before",
             "created_at": naive(NOW - timedelta(days=8, hours=i))}
            for i in range(4)
        ),
    )
    report = await build_stats(SQLStatsStore(engine), StatsRequest.from_params(me, range_="7"), now=NOW)

    kpi = report.solo.kpi
    assert (kpi.posts, kpi.completed_trips) == (1, 1)
    assert kpi.deltas.posts == -75.0
    assert kpi.deltas.completed_trips == -50.0
    assert kpi.deltas.comments == 0


async def test_target_user_outside_scope_gets_no_sessions(engine):
    me, _, _, _ = await _seed_conversation(engine)
    stranger = new_id()
    await insert(
        engine,
        schema.user_sessions,
        {"id": new_id(), "user_id": stranger, "session_start": naive(NOW - timedelta(hours=2)),
         "session_end": naive(NOW - timedelta(hours=1)), "last_seen_at": None, "duration_seconds": None},
    )

    for board_id in (None, new_id()):
        req = StatsRequest.from_params(me, mode="group", range_="7", board_id=board_id, target_user_id=stranger)
        report = await build_stats(SQLStatsStore(engine), req, now=NOW)
        assert report.group.kpi.online_seconds == 0
        assert report.group.ranking == []
        assert report.group.heatmap == []

"""Tests for the SQLAlchemy-backed store."""
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from tripstats.errors import StorageUnavailableError
from tripstats.store import schema
from tripstats.store.base import StatsStore
from tripstats.store.rows import SessionRow
from tripstats.store.sql import SQLStatsStore, _parse_budget, _window

from conftest import NOW, insert, naive, new_id, seed_group

pytestmark = pytest.mark.asyncio


async def test_is_a_stats_store(engine):
    assert isinstance(SQLStatsStore(engine), StatsStore)


async def test_has_sessions_probe(engine, engine_without_sessions):
    assert await SQLStatsStore(engine).has_sessions() is True
    assert await SQLStatsStore(engine_without_sessions).has_sessions() is False


async def test_unreachable_database_raises_storage_unavailable(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nested' / 'x.db'}")
    try:
        with pytest.raises(StorageUnavailableError):
            await SQLStatsStore(eng).has_sessions()
    finally:
        await eng.dispose()


async def test_accessible_boards_skip_archived_and_foreign(engine):
    me, other = new_id(), new_id()
    _, board_id = await seed_group(engine, (me, "Ala"), title="Tatry")
    archived = new_id()
    await insert(
        engine,
        schema.boards,
        {"id": archived, "group_id": new_id(), "title": "Old", "created_by": me,
         "archived_at": naive(NOW), "created_at": naive(NOW)},
    )
    await insert(engine, schema.board_members, {"board_id": archived, "user_id": me})
    store = SQLStatsStore(engine)

    boards = await store.list_accessible_boards(me)
    assert [b.id for b in boards] == [board_id]
    assert await store.list_accessible_boards(other) == []
    assert await store.list_accessible_boards(me, new_id()) == []


async def test_display_name_fallbacks(engine):
    a, b, c = new_id(), new_id(), new_id()
    await insert(
        engine,
        schema.profiles,
        {"id": a, "username": "ala", "full_name": "Ala Nowak", "display_name": None},
        {"id": b, "username": "bartek", "full_name": None, "display_name": None},
        {"id": c, "username": None, "full_name": None, "display_name": None},
    )
    profiles = await SQLStatsStore(engine).get_profiles([a, b, c])
    assert profiles[a].name == "Ala Nowak"
    assert profiles[b].name == "bartek"
    assert profiles[c].name == "Użytkownik"


async def test_posts_window_is_half_open(engine):
    me = new_id()
    _, board_id = await seed_group(engine, (me, "Ala"))
    day = NOW.replace(hour=0, minute=0)
    await insert(
        engine,
        schema.posts,
        {"id": new_id(), "board_id": board_id, "author_id": me, "content": "a", "created_at": naive(day)},
        {"id": new_id(), "board_id": board_id, "author_id": me, "content": "b",
         "created_at": naive(day + timedelta(days=1))},
    )
    store = SQLStatsStore(engine)
    posts = await store.list_posts([board_id], day, day + timedelta(days=1))
    assert [p.content for p in posts] == ["a"]
    assert posts[0].created_at.tzinfo is not None
    assert await store.list_posts([], None, None) == []


async def test_trip_boards_parse_budget_and_dates(engine):
    me = new_id()
    _, board_id = await seed_group(
        engine,
        (me, "Ala"),
        board_status="completed",
        location="Zakopane",
        start_date=date(2026, 3, 10),
        end_date=date(2026, 3, 14),
        budget="1 200 zł",
    )
    [trip] = await SQLStatsStore(engine).list_trip_boards([board_id])
    assert trip.is_completed
    assert trip.budget == 1200.0
    assert trip.trip_days == 5
    assert trip.completed_on == date(2026, 3, 14)


async def test_parse_budget():
    assert _parse_budget("~900") == 900.0
    assert _parse_budget("brak") is None
    assert _parse_budget(None) is None
    assert _parse_budget("1.2.3") is None


async def test_sessions_filtered_by_user(engine):
    me, other = new_id(), new_id()
    await insert(
        engine,
        schema.user_sessions,
        {"id": new_id(), "user_id": me, "session_start": naive(NOW - timedelta(hours=2)),
         "session_end": naive(NOW - timedelta(hours=1)), "last_seen_at": None, "duration_seconds": None},
        {"id": new_id(), "user_id": other, "session_start": naive(NOW - timedelta(hours=2)),
         "session_end": None, "last_seen_at": None, "duration_seconds": 60.0},
    )
    store = SQLStatsStore(engine)
    assert len(await store.list_sessions(None, None)) == 2
    [mine] = await store.list_sessions(None, None, [me])
    assert mine.online_seconds(NOW) == 3600
    assert await store.list_sessions(None, None, []) == []


async def test_open_session_counts_until_last_seen():
    start = NOW - timedelta(minutes=10)
    s = SessionRow(user_id="u", session_start=start, last_seen_at=NOW - timedelta(minutes=5))
    assert s.online_seconds(NOW) == 300
    # a last_seen in the future is capped at now
    s = SessionRow(user_id="u", session_start=start, last_seen_at=NOW + timedelta(hours=1))
    assert s.online_seconds(NOW) == 600
    assert SessionRow(user_id="u", session_start=start).online_seconds(NOW) == 0


async def test_window_bounds_are_bound_as_naive_utc():
    aware = datetime(2026, 3, 18, 2, 0, tzinfo=timezone(timedelta(hours=2)))
    lower, upper = _window(schema.posts.c.created_at, aware, NOW)
    assert lower.right.value == datetime(2026, 3, 18, 0, 0)
    assert upper.right.value == naive(NOW)
    assert _window(schema.posts.c.created_at, None, None) == []

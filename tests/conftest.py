"""Shared fixtures: a throwaway SQLite database with the stats schema."""
import uuid
from datetime import datetime, timezone

import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from tripstats.store import schema

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)  # a Wednesday


def new_id() -> str:
    return str(uuid.uuid4())


def naive(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


async def _make_engine(path, with_sessions: bool):
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
    async with engine.begin() as conn:
        await conn.run_sync(schema.create_schema, with_sessions)
    return engine


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = await _make_engine(tmp_path / "stats.db", with_sessions=True)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def engine_without_sessions(tmp_path):
    eng = await _make_engine(tmp_path / "stats-nosessions.db", with_sessions=False)
    yield eng
    await eng.dispose()


async def insert(engine, table, *rows: dict) -> None:
    async with engine.begin() as conn:
        await conn.execute(table.insert(), list(rows))


async def seed_group(engine, *members: tuple[str, str], board_status: str = "planning", **board) -> tuple[str, str]:
    """One group with one board that every member belongs to; returns (group_id, board_id)."""
    group_id, board_id = new_id(), new_id()
    creator = members[0][0]
    await insert(
        engine,
        schema.boards,
        {
            "id": board_id,
            "group_id": group_id,
            "title": board.pop("title", "Tatry"),
            "created_by": board.pop("created_by", creator),
            "status": board_status,
            "created_at": naive(board.pop("created_at", NOW)),
            **board,
        },
    )
    await insert(engine, schema.profiles, *({"id": uid, "display_name": name} for uid, name in members))
    await insert(engine, schema.group_members, *({"group_id": group_id, "user_id": uid} for uid, _ in members))
    await insert(engine, schema.board_members, *({"board_id": board_id, "user_id": uid} for uid, _ in members))
    return group_id, board_id

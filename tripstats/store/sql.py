"""SQLAlchemy (async) implementation of :class:`StatsStore`."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import func, inspect, select
from sqlalchemy.engine import Row
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from tripstats.errors import StorageUnavailableError
from tripstats.store import schema
from tripstats.store.rows import (
    DEFAULT_DISPLAY_NAME,
    BoardRow,
    CommentRow,
    MemberRow,
    MentionRow,
    PostRow,
    SessionRow,
    TripRow,
    as_utc,
)

_log = logging.getLogger(__name__)

_BUDGET_JUNK = re.compile(r"[^0-9.\-]")


def _naive_utc(value: datetime) -> datetime:
    # columns are "timestamp without time zone" holding UTC
    return as_utc(value).replace(tzinfo=None)


def _window(column: Any, start: datetime | None, end: datetime | None) -> list[Any]:
    clauses = []
    if start is not None:
        clauses.append(column >= _naive_utc(start))
    if end is not None:
        clauses.append(column < _naive_utc(end))
    return clauses


def _parse_budget(raw: Any) -> float | None:
    """Strip currency symbols and spacing from a free-text budget."""
    if raw is None:
        return None
    cleaned = _BUDGET_JUNK.sub("", str(raw))
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def _display_name(row: Row) -> str:
    for candidate in (row.display_name, row.full_name, row.username):
        if candidate and str(candidate).strip():
            return str(candidate)
    return DEFAULT_DISPLAY_NAME


def _member(row: Row) -> MemberRow:
    return MemberRow(id=str(row.id), name=_display_name(row), avatar_url=row.avatar_url or None)


class SQLStatsStore:
    """Reads boards, posts, comments, mentions and sessions through an ``AsyncEngine``.

    The engine (and its pool) belongs to the caller; this class never disposes it.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[AsyncConnection]:
        try:
            async with self._engine.connect() as conn:
                yield conn
        except (DBAPIError, OSError) as exc:
            _log.error("stats store query failed: %s", exc)
            raise StorageUnavailableError(str(exc)) from exc

    async def _fetch(self, query: Any) -> list[Row]:
        async with self._connect() as conn:
            result = await conn.execute(query)
            return list(result.fetchall())

    async def has_sessions(self) -> bool:
        async with self._connect() as conn:
            return await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).has_table(schema.SESSIONS_TABLE)
            )

    async def list_accessible_boards(self, user_id: str, board_id: str | None = None) -> list[BoardRow]:
        b, bm = schema.boards, schema.board_members
        query = (
            select(b.c.id, b.c.title, b.c.group_id)
            .join(bm, (bm.c.board_id == b.c.id) & (bm.c.user_id == user_id))
            .where(b.c.archived_at.is_(None))
            .order_by(b.c.title.asc(), b.c.id.asc())
        )
        if board_id is not None:
            query = query.where(b.c.id == board_id)
        rows = await self._fetch(query)
        return [
            BoardRow(id=str(r.id), title=str(r.title or "Tablica"), group_id=str(r.group_id))
            for r in rows
        ]

    async def list_group_members(self, group_ids: Sequence[str]) -> list[MemberRow]:
        if not group_ids:
            return []
        gm, p = schema.group_members, schema.profiles
        query = (
            select(p.c.id, p.c.username, p.c.full_name, p.c.display_name, p.c.avatar_url)
            .join(gm, gm.c.user_id == p.c.id)
            .where(gm.c.group_id.in_(list(group_ids)))
            .distinct()
        )
        members = {m.id: m for m in map(_member, await self._fetch(query))}
        return sorted(members.values(), key=lambda m: (m.name, m.id))

    async def get_profiles(self, user_ids: Sequence[str]) -> dict[str, MemberRow]:
        if not user_ids:
            return {}
        p = schema.profiles
        query = select(p.c.id, p.c.username, p.c.full_name, p.c.display_name, p.c.avatar_url).where(
            p.c.id.in_(list(set(user_ids)))
        )
        return {m.id: m for m in map(_member, await self._fetch(query))}

    async def list_posts(
        self,
        board_ids: Sequence[str],
        start: datetime | None,
        end: datetime | None,
        author_id: str | None = None,
    ) -> list[PostRow]:
        if not board_ids:
            return []
        t = schema.posts
        query = (
            select(t)
            .where(t.c.board_id.in_(list(board_ids)), *_window(t.c.created_at, start, end))
            .order_by(t.c.created_at.asc(), t.c.id.asc())
        )
        if author_id is not None:
            query = query.where(t.c.author_id == author_id)
        return [
            PostRow(
                id=str(r.id),
                board_id=str(r.board_id),
                author_id=str(r.author_id),
                content=r.content or "",
                created_at=as_utc(r.created_at),
            )
            for r in await self._fetch(query)
        ]

    async def list_comments(
        self,
        board_ids: Sequence[str],
        start: datetime | None,
        end: datetime | None,
        author_id: str | None = None,
    ) -> list[CommentRow]:
        if not board_ids:
            return []
        t = schema.comments
        query = (
            select(t)
            .where(t.c.board_id.in_(list(board_ids)), *_window(t.c.created_at, start, end))
            .order_by(t.c.created_at.asc(), t.c.id.asc())
        )
        if author_id is not None:
            query = query.where(t.c.author_id == author_id)
        return [
            CommentRow(
                id=str(r.id),
                post_id=str(r.post_id),
                board_id=str(r.board_id),
                author_id=str(r.author_id),
                content=r.content or "",
                created_at=as_utc(r.created_at),
            )
            for r in await self._fetch(query)
        ]

    async def comment_counts(self, post_ids: Sequence[str]) -> dict[str, int]:
        if not post_ids:
            return {}
        t = schema.comments
        query = (
            select(t.c.post_id, func.count(t.c.id).label("n"))
            .where(t.c.post_id.in_(list(post_ids)))
            .group_by(t.c.post_id)
        )
        return {str(r.post_id): int(r.n) for r in await self._fetch(query)}

    async def list_mentions(
        self,
        board_ids: Sequence[str],
        start: datetime | None,
        end: datetime | None,
        mentioned_user_id: str | None = None,
    ) -> list[MentionRow]:
        if not board_ids:
            return []
        t = schema.post_mentions
        query = (
            select(t)
            .where(t.c.board_id.in_(list(board_ids)), *_window(t.c.created_at, start, end))
            .order_by(t.c.created_at.asc())
        )
        if mentioned_user_id is not None:
            query = query.where(t.c.mentioned_user_id == mentioned_user_id)
        return [
            MentionRow(
                post_id=str(r.post_id),
                board_id=str(r.board_id),
                mentioned_user_id=str(r.mentioned_user_id),
                created_at=as_utc(r.created_at),
            )
            for r in await self._fetch(query)
        ]

    async def list_trip_boards(self, board_ids: Sequence[str]) -> list[TripRow]:
        if not board_ids:
            return []
        t = schema.boards
        query = (
            select(t)
            .where(t.c.id.in_(list(board_ids)))
            .order_by(t.c.created_at.asc(), t.c.id.asc())
        )
        return [
            TripRow(
                id=str(r.id),
                created_by=str(r.created_by),
                status=r.status,
                location=r.location,
                start_date=r.start_date,
                end_date=r.end_date,
                budget=_parse_budget(r.budget),
                created_at=as_utc(r.created_at),
            )
            for r in await self._fetch(query)
        ]

    async def list_sessions(
        self,
        start: datetime | None,
        end: datetime | None,
        user_ids: Sequence[str] | None = None,
    ) -> list[SessionRow]:
        if user_ids is not None and not user_ids:
            return []
        t = schema.user_sessions
        query = (
            select(t)
            .where(*_window(t.c.session_start, start, end))
            .order_by(t.c.session_start.asc())
        )
        if user_ids is not None:
            query = query.where(t.c.user_id.in_(list(user_ids)))
        return [
            SessionRow(
                user_id=str(r.user_id),
                session_start=as_utc(r.session_start),
                session_end=as_utc(r.session_end) if r.session_end else None,
                last_seen_at=as_utc(r.last_seen_at) if r.last_seen_at else None,
                duration_seconds=r.duration_seconds,
            )
            for r in await self._fetch(query)
        ]

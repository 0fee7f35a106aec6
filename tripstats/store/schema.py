"""Tables read by :class:`SQLStatsStore`.

The CRUD service owns and migrates these tables; they are declared here so
queries can be built with SQLAlchemy Core and so local/test databases can be
created with the same shape. ``user_sessions`` is optional: deployments
without presence tracking simply do not have it.
"""
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Connection

metadata = MetaData()

boards = Table(
    "boards",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("group_id", String(36), nullable=False),
    Column("title", String(200)),
    Column("created_by", String(36), nullable=False),
    Column("status", String(32)),
    Column("location", String(200)),
    Column("start_date", Date),
    Column("end_date", Date),
    # free text in the app ("1 200 zł", "~900"), parsed by the store
    Column("budget", String(64)),
    Column("archived_at", DateTime),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime),
)

board_members = Table(
    "board_members",
    metadata,
    Column("board_id", String(36), primary_key=True),
    Column("user_id", String(36), primary_key=True),
)

group_members = Table(
    "group_members",
    metadata,
    Column("group_id", String(36), primary_key=True),
    Column("user_id", String(36), primary_key=True),
)

profiles = Table(
    "profiles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(64)),
    Column("full_name", String(200)),
    Column("display_name", String(200)),
    Column("avatar_url", Text),
)

posts = Table(
    "posts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("board_id", String(36), nullable=False, index=True),
    Column("author_id", String(36), nullable=False),
    Column("content", Text),
    Column("created_at", DateTime, nullable=False),
)

comments = Table(
    "comments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("post_id", String(36), nullable=False, index=True),
    Column("board_id", String(36), nullable=False, index=True),
    Column("author_id", String(36), nullable=False),
    Column("content", Text),
    Column("created_at", DateTime, nullable=False),
)

post_mentions = Table(
    "post_mentions",
    metadata,
    Column("post_id", String(36), primary_key=True),
    Column("mentioned_user_id", String(36), primary_key=True),
    Column("board_id", String(36), nullable=False),
    Column("created_at", DateTime, nullable=False),
)

user_sessions = Table(
    "user_sessions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("session_start", DateTime, nullable=False),
    Column("session_end", DateTime),
    Column("last_seen_at", DateTime),
    Column("duration_seconds", Float),
)

SESSIONS_TABLE = user_sessions.name


def create_schema(connection: Connection, with_sessions: bool = True) -> None:
    """Create the tables on a sync connection (use via ``AsyncConnection.run_sync``)."""
    tables = [t for t in metadata.sorted_tables if with_sessions or t is not user_sessions]
    metadata.create_all(connection, tables=tables)

"""Work out which boards and co-members a stats request may see."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from tripstats.store.base import StatsStore
from tripstats.store.rows import BoardRow, MemberRow

_log = logging.getLogger(__name__)

ALL = "all"
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)


def parse_id(raw: str | None) -> str | None:
    """A well-formed id, or None for ``"all"``/missing/garbage."""
    if raw and _UUID_RE.match(raw):
        return raw
    return None


@dataclass(frozen=True)
class Scope:
    user_id: str
    board_id: str | None = None
    target_user_id: str | None = None
    boards: list[BoardRow] = field(default_factory=list)
    users: list[MemberRow] = field(default_factory=list)

    @property
    def board_ids(self) -> list[str]:
        return [b.id for b in self.boards]

    @property
    def member_ids(self) -> list[str]:
        """Whose sessions count towards group figures.

        A target user outside the scope's co-members contributes nothing.
        """
        members = [u.id for u in self.users]
        if self.target_user_id is not None:
            return [self.target_user_id] if self.target_user_id in members else []
        return members


async def resolve_scope(
    store: StatsStore,
    user_id: str,
    board_id: str | None = None,
    target_user_id: str | None = None,
) -> Scope:
    """Accessible boards plus the co-members of the groups behind them.

    A board the user cannot see yields an empty scope rather than an error,
    so every downstream figure is simply zero.
    """
    boards = await store.list_accessible_boards(user_id, board_id)
    group_ids = list(dict.fromkeys(b.group_id for b in boards))
    users = await store.list_group_members(group_ids)
    _log.debug(
        "scope user=%s board=%s -> %d boards, %d members", user_id, board_id or ALL, len(boards), len(users)
    )
    return Scope(
        user_id=user_id,
        board_id=board_id,
        target_user_id=target_user_id,
        boards=boards,
        users=users,
    )

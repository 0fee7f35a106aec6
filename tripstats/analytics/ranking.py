"""Leaderboard scoring for group mode."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

from tripstats.models import RankingEntry
from tripstats.store.rows import DEFAULT_DISPLAY_NAME, MemberRow

POST_WEIGHT = 3
COMMENT_WEIGHT = 2
REACTION_WEIGHT = 1
ONLINE_SECONDS_PER_POINT = 10
TOP_N = 5


@dataclass(frozen=True)
class UserActivity:
    user_id: str
    posts: int = 0
    comments: int = 0
    online_seconds: float = 0.0
    # no reaction source exists yet; kept so the formula stays stable
    reactions: int = 0


def score(posts: int, comments: int, online_seconds: float, reactions: int = 0) -> float:
    return (
        posts * POST_WEIGHT
        + comments * COMMENT_WEIGHT
        + reactions * REACTION_WEIGHT
        + online_seconds / ONLINE_SECONDS_PER_POINT
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def rank_users(
    activity: Sequence[UserActivity],
    profiles: Mapping[str, MemberRow],
    limit: int = TOP_N,
) -> list[RankingEntry]:
    """Top ``limit`` users by descending score.

    ``sorted`` is stable, so equal scores keep the order the readers produced.
    """
    ordered = sorted(
        activity,
        key=lambda a: score(a.posts, a.comments, a.online_seconds, a.reactions),
        reverse=True,
    )
    entries = []
    for item in ordered[:limit]:
        profile = profiles.get(item.user_id)
        entries.append(
            RankingEntry(
                user_id=item.user_id,
                name=profile.name if profile else DEFAULT_DISPLAY_NAME,
                avatar_url=profile.avatar_url if profile else None,
                posts=item.posts,
                comments=item.comments,
                online_seconds=int(item.online_seconds),
                reactions=item.reactions,
                score=_round_half_up(score(item.posts, item.comments, item.online_seconds, item.reactions)),
            )
        )
    return entries

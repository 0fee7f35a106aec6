from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Iterable, Mapping

from tripstats.models import TrendPoint


def count_by_day(timestamps: Iterable[datetime]) -> dict[date, int]:
    return dict(Counter(ts.date() for ts in timestamps))


def sum_by_day(pairs: Iterable[tuple[datetime, float]]) -> dict[date, float]:
    totals: dict[date, float] = defaultdict(float)
    for ts, value in pairs:
        totals[ts.date()] += value
    return dict(totals)


def build_trend(
    posts_by_day: Mapping[date, int],
    comments_by_day: Mapping[date, int],
    online_by_day: Mapping[date, float],
) -> list[TrendPoint]:
    """Merge the three daily series into one ascending series.

    Only days present in at least one source appear; there is no calendar padding.
    """
    days = sorted(set(posts_by_day) | set(comments_by_day) | set(online_by_day))
    return [
        TrendPoint(
            date=day.isoformat(),
            posts=posts_by_day.get(day, 0),
            comments=comments_by_day.get(day, 0),
            online_seconds=int(online_by_day.get(day, 0)),
        )
        for day in days
    ]

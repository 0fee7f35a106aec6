from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Iterable

from tripstats.models import HeatmapCell


def day_of_week(ts: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return ts.isoweekday() % 7


def bin_heatmap(*streams: Iterable[datetime]) -> list[HeatmapCell]:
    """Count events per (weekday, hour) across all streams, in UTC.

    Empty buckets are left out; readers treat a missing cell as zero.
    """
    cells: Counter = Counter()
    for stream in streams:
        for ts in stream:
            ts = ts.astimezone(timezone.utc)
            cells[(day_of_week(ts), ts.hour)] += 1
    return [
        HeatmapCell(day_of_week=dow, hour=hour, value=value)
        for (dow, hour), value in sorted(cells.items())
    ]

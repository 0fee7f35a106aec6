from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    # the dashboard consumes camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class TrendPoint(_Model):
    date: str
    posts: int = 0
    comments: int = 0
    online_seconds: int = 0


class HeatmapCell(_Model):
    day_of_week: int
    hour: int
    value: int


class RankingEntry(_Model):
    user_id: str
    name: str
    avatar_url: str | None = None
    posts: int = 0
    comments: int = 0
    online_seconds: int = 0
    reactions: int = 0
    score: int = 0


class EmojiCount(_Model):
    emoji: str
    count: int


class BoardOption(_Model):
    id: str
    title: str


class UserOption(_Model):
    id: str
    name: str
    avatar_url: str | None = None


class Filters(_Model):
    range: str
    board_id: str
    start_date: str | None = None
    end_date: str | None = None
    user_id: str


class Options(_Model):
    boards: list[BoardOption] = []
    users: list[UserOption] = []


# ── solo ──────────────────────────────────────────────────────────────────────

class SoloDeltas(_Model):
    posts: float = 0.0
    comments: float = 0.0
    online_seconds: float = 0.0
    completed_trips: float = 0.0


class SoloKpi(_Model):
    posts: int = 0
    comments: int = 0
    online_seconds: int = 0
    completed_trips: int = 0
    deltas: SoloDeltas = SoloDeltas()


class SoloOnline(_Model):
    total_seconds: int = 0
    avg_session_seconds: float = 0.0
    sessions_count: int = 0
    trend: list[TrendPoint] = []


class SoloTrips(_Model):
    completed_trips: int = 0
    total_trip_days: int = 0
    most_frequent_direction: str | None = None
    longest_trip_days: int = 0
    average_budget: float | None = None


class SoloEngagement(_Model):
    mentions_received: int = 0
    reactions_received: int = 0
    average_comments_on_posts: float = 0.0
    top_emojis: list[EmojiCount] = []


class SoloStats(_Model):
    kpi: SoloKpi
    online: SoloOnline
    trips: SoloTrips
    engagement: SoloEngagement
    activity_trend: list[TrendPoint] = []


# ── group ─────────────────────────────────────────────────────────────────────

class GroupKpi(_Model):
    posts: int = 0
    comments: int = 0
    online_seconds: int = 0
    group_trips: int = 0
    most_active_user: str | None = None


class GroupTrips(_Model):
    total_trips: int = 0
    total_trip_days: int = 0
    most_visited_place: str | None = None
    average_trip_days: float = 0.0
    most_active_traveler: str | None = None


class EngagingPost(_Model):
    post_id: str
    excerpt: str
    comments_count: int


class GroupInteractions(_Model):
    top_emojis: list[EmojiCount] = []
    most_mentioned_user: str | None = None
    average_comments_per_post: float = 0.0
    most_engaging_post: EngagingPost | None = None


class GroupStats(_Model):
    kpi: GroupKpi
    ranking: list[RankingEntry] = []
    heatmap: list[HeatmapCell] = []
    trips: GroupTrips
    interactions: GroupInteractions


class StatsResponse(_Model):
    mode: Literal["solo", "group"]
    filters: Filters
    options: Options
    solo: SoloStats
    group: GroupStats

    def as_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

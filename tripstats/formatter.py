from datetime import date

from tripstats.models import EmojiCount, StatsResponse

_DAYS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _duration(seconds: float) -> str:
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _delta(value: float) -> str:
    return f"{value:+.1f}%"


def _emojis(items: list[EmojiCount]) -> str:
    return " ".join(f"{e.emoji}×{e.count}" for e in items) or "N/A"


def format_report(report: StatsResponse) -> str:
    """Format a stats report into a Markdown string."""
    f = report.filters
    solo, group = report.solo, report.group

    window = f"{f.start_date} to {f.end_date}" if f.start_date or f.end_date else f"range {f.range}"
    sections = [
        "# Trip Board Stats\n",
        f"*Generated {date.today()} · {window} · board {f.board_id} · user {f.user_id}*\n",
    ]

    kpi = solo.kpi
    sections.append("## Solo\n")
    sections.append("| Metric | Value | Change |")
    sections.append("|---|---|---|")
    sections.append(f"| Posts | {kpi.posts} | {_delta(kpi.deltas.posts)} |")
    sections.append(f"| Comments | {kpi.comments} | {_delta(kpi.deltas.comments)} |")
    sections.append(f"| Online | {_duration(kpi.online_seconds)} | {_delta(kpi.deltas.online_seconds)} |")
    sections.append(f"| Completed trips | {kpi.completed_trips} | {_delta(kpi.deltas.completed_trips)} |")
    sections.append("")

    online = solo.online
    sections.append(
        f"- **Sessions**: {online.sessions_count}, avg {_duration(online.avg_session_seconds)}"
    )
    trips = solo.trips
    sections.append(f"- **Trip days**: {trips.total_trip_days} (longest {trips.longest_trip_days})")
    sections.append(f"- **Favourite direction**: {trips.most_frequent_direction or 'N/A'}")
    if trips.average_budget is not None:
        sections.append(f"- **Average budget**: {trips.average_budget:.2f}")
    eng = solo.engagement
    sections.append(f"- **Mentions received**: {eng.mentions_received}")
    sections.append(f"- **Comments per post**: {eng.average_comments_on_posts:.2f}")
    sections.append(f"- **Top emojis**: {_emojis(eng.top_emojis)}")
    sections.append("")

    if solo.activity_trend:
        sections.append("### Activity\n")
        sections.append("| Day | Posts | Comments | Online |")
        sections.append("|---|---|---|---|")
        for p in solo.activity_trend:
            sections.append(f"| {p.date} | {p.posts} | {p.comments} | {_duration(p.online_seconds)} |")
        sections.append("")

    gk = group.kpi
    sections.append("## Group\n")
    sections.append(f"- **Posts / comments**: {gk.posts} / {gk.comments}")
    sections.append(f"- **Online**: {_duration(gk.online_seconds)}")
    sections.append(f"- **Completed trips**: {gk.group_trips}")
    sections.append(f"- **Most active user**: {gk.most_active_user or 'N/A'}")
    gt = group.trips
    sections.append(f"- **Most visited place**: {gt.most_visited_place or 'N/A'}")
    sections.append(f"- **Most active traveler**: {gt.most_active_traveler or 'N/A'}")
    inter = group.interactions
    sections.append(f"- **Most mentioned**: {inter.most_mentioned_user or 'N/A'}")
    sections.append(f"- **Comments per post**: {inter.average_comments_per_post:.2f}")
    sections.append(f"- **Top emojis**: {_emojis(inter.top_emojis)}")
    if inter.most_engaging_post:
        post = inter.most_engaging_post
        sections.append(f"- **Most engaging post** ({post.comments_count} comments): {post.excerpt[:60]}")
    sections.append("")

    if group.ranking:
        sections.append("### Ranking\n")
        sections.append("| # | User | Posts | Comments | Online | Score |")
        sections.append("|---|---|---|---|---|---|")
        for i, r in enumerate(group.ranking, 1):
            sections.append(
                f"| {i} | {r.name} | {r.posts} | {r.comments} | {_duration(r.online_seconds)} | {r.score} |"
            )
        sections.append("")

    if group.heatmap:
        peak = max(group.heatmap, key=lambda c: c.value)
        sections.append(f"**Peak activity**: {_DAYS[peak.day_of_week]} {peak.hour:02d}:00 UTC ({peak.value} events)\n")

    return "\n".join(sections)

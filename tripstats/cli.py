import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from sqlalchemy.ext.asyncio import create_async_engine

from tripstats.analytics.composer import StatsRequest, build_stats
from tripstats.config import Settings, configure_logging
from tripstats.errors import StatsError
from tripstats.formatter import format_report
from tripstats.models import StatsResponse
from tripstats.store.sql import SQLStatsStore

load_dotenv()
app = typer.Typer()
console = Console()


async def _build(database_url: str, request: StatsRequest, timeout: float) -> StatsResponse:
    engine = create_async_engine(database_url)
    try:
        return await build_stats(SQLStatsStore(engine), request, timeout=timeout)
    finally:
        await engine.dispose()


@app.command()
def report(
    user_id: str = typer.Argument(help="Id of the user the report is for"),
    range_: str = typer.Option("30", "--range", "-r", help="Preset window: 7, 30, 90, all or custom"),
    board: str = typer.Option("all", "--board", "-b", help="Board id, or 'all'"),
    start: Optional[str] = typer.Option(None, "--start", help="Custom window start, YYYY-MM-DD"),
    end: Optional[str] = typer.Option(None, "--end", help="Custom window end, YYYY-MM-DD"),
    user: str = typer.Option("all", "--user", "-u", help="Narrow group figures to one user id"),
    mode: str = typer.Option("solo", "--mode", "-m", help="Dashboard view: 'solo' or 'group'"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="Overrides TRIPSTATS_DATABASE_URL"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON payload"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save report to file instead of printing"),
):
    if mode not in ("solo", "group"):
        console.print(f"[bold red]Error:[/] --mode must be 'solo' or 'group', got '{mode}'")
        raise typer.Exit(1)

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    request = StatsRequest.from_params(
        user_id,
        mode=mode,
        range_=range_,
        board_id=board,
        start_date=start,
        end_date=end,
        target_user_id=user,
    )

    try:
        with console.status("[bold green]Building stats..."):
            result = asyncio.run(_build(database_url or settings.database_url, request, settings.request_timeout))
    except StatsError as exc:
        console.print(f"[bold red]Error:[/] {escape(str(exc))}")
        raise typer.Exit(1)

    text = json.dumps(result.as_dict(), indent=2, ensure_ascii=False) if as_json else format_report(result)

    if output:
        output.write_text(text)
        console.print(f"[bold green]✓[/] Report saved to [cyan]{output}[/]")
    elif as_json:
        console.print_json(text)
    else:
        console.print(Markdown(text))


@app.callback()
def main():
    """Engagement stats for trip-planning boards."""

"""
Root Typer application for the regsho-spine CLI.

Every command opens a ``ShortVolumeService`` against the configured
SQLite database, runs one operation and closes it again.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import typer

from regsho_spine.cli.utils import console, fail, output_data, output_ingest, run_with_service
from regsho_spine.core.errors import ConfigError, RegShoError
from regsho_spine.core.logging import configure_logging
from regsho_spine.core.settings import get_settings
from regsho_spine.domains.short_volume.service import ShortVolumeService

app = typer.Typer(
    name="regsho-spine",
    help="regsho-spine - FINRA Reg SHO daily short sale volume ingestion.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from regsho_spine import __version__

        typer.echo(f"regsho-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    database: str | None = typer.Option(
        None, "--database", "-d", help="SQLite database path (default: REGSHO_DATABASE_PATH)."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override REGSHO_LOG_LEVEL."),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """regsho-spine CLI - ingest, query and maintain short sale volume data."""
    try:
        settings = get_settings()
    except ConfigError as e:
        fail(str(e))
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_format == "json",
    )
    ctx.obj = {"database": database}


def _invoke(ctx: typer.Context, fn: Callable[[ShortVolumeService], Awaitable[Any] | Any]) -> Any:
    try:
        return run_with_service(ctx.obj["database"], fn)
    except (RegShoError, ValueError) as e:
        fail(str(e))


# ── Ingestion ────────────────────────────────────────────────────────────


@app.command()
def ingest(
    ctx: typer.Context,
    date: str | None = typer.Option(
        None, "--date", help="YYYYMMDD or YYYY-MM-DD (default: yesterday, US/Eastern)."
    ),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Download and store one day's file."""
    result = _invoke(ctx, lambda service: service.ingest_date(date))
    output_ingest(result, as_json=json_out)


@app.command()
def backfill(
    ctx: typer.Context,
    start: str = typer.Argument(..., help="First date (YYYYMMDD or YYYY-MM-DD)."),
    end: str | None = typer.Argument(None, help="Last date, inclusive (default: START)."),
    delay: float | None = typer.Option(None, "--delay", help="Seconds between days."),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Ingest every weekday in a date range, sequentially."""

    async def run(service: ShortVolumeService):
        if delay is not None:
            service.coordinator.backfill_delay = delay
        return await service.backfill(start, end or start)

    result = _invoke(ctx, run)
    output_data(result, as_json=json_out, title="Backfill")
    if result.failed_dates:
        raise typer.Exit(code=1)


@app.command()
def daily(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Scheduled job: ingest yesterday, skipping weekends."""
    result = _invoke(ctx, lambda service: service.run_daily())
    output_ingest(result, as_json=json_out)


@app.command("check-latest")
def check_latest(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Run the daily job only if yesterday is not stored yet."""
    result = _invoke(ctx, lambda service: service.check_latest())
    output_ingest(result, as_json=json_out)


# ── Queries ──────────────────────────────────────────────────────────────


@app.command()
def symbol(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol."),
    limit: int = typer.Option(30, "--limit", "-n", min=1),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Most recent records for a symbol."""
    records = _invoke(ctx, lambda service: service.query_by_symbol(ticker, limit))
    output_data(records, as_json=json_out, title=f"{ticker.upper()} short volume")


@app.command("range")
def date_range(
    ctx: typer.Context,
    start: str = typer.Argument(..., help="First date, inclusive."),
    end: str = typer.Argument(..., help="Last date, inclusive."),
    ticker: str | None = typer.Option(None, "--symbol", "-s"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Records in a date range, optionally for one symbol."""
    records = _invoke(ctx, lambda service: service.query_by_range(start, end, ticker))
    output_data(records, as_json=json_out, title=f"Short volume {start}..{end}")


@app.command()
def top(
    ctx: typer.Context,
    date: str = typer.Argument(..., help="Trading date."),
    limit: int = typer.Option(50, "--limit", "-n", min=1),
    min_volume: int | None = typer.Option(
        None, "--min-volume", min=0, help="Total volume floor (default: REGSHO_TOP_RATIO_MIN_VOLUME)."
    ),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Highest short ratios for one date."""
    records = _invoke(ctx, lambda service: service.query_top_by_ratio(date, limit, min_volume))
    output_data(records, as_json=json_out, title=f"Top short ratio {date}")


@app.command()
def dates(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Dates with stored data, newest first."""
    output_data(_invoke(ctx, lambda service: service.list_dates()), as_json=json_out, title="Dates")


@app.command()
def search(
    ctx: typer.Context,
    prefix: str = typer.Argument(..., help="Symbol prefix (case-insensitive)."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=20),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Symbols starting with a prefix."""
    symbols = _invoke(ctx, lambda service: service.search_symbols(prefix, limit))
    output_data(symbols, as_json=json_out, title="Symbols")


@app.command()
def stats(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Database statistics."""
    output_data(_invoke(ctx, lambda service: service.stats()), as_json=json_out, title="Stats")


# ── Maintenance ──────────────────────────────────────────────────────────


@app.command("init-db")
def init_db(ctx: typer.Context) -> None:
    """Create the table and indexes (idempotent)."""
    _invoke(ctx, lambda service: service.repository.ensure_schema())
    console.print("[bold green]OK[/bold green] schema ready")


@app.command()
def prune(
    ctx: typer.Context,
    days: int | None = typer.Option(
        None, "--days", min=0, help="Keep this many days (default: REGSHO_RETENTION_DAYS)."
    ),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Delete records older than N days."""
    result = _invoke(ctx, lambda service: service.prune_older_than(days))
    output_data(result, as_json=json_out, title="Prune")


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting every record."),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Delete every record."""
    if not yes:
        fail("refusing to clear without --yes")
    result = _invoke(ctx, lambda service: service.clear_all())
    output_data(result, as_json=json_out, title="Clear")

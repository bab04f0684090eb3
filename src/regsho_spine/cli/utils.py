"""
CLI utility helpers - service construction and output formatting.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from regsho_spine.core.settings import RegShoSettings, get_settings
from regsho_spine.domains.short_volume.models import IngestResult
from regsho_spine.domains.short_volume.service import ShortVolumeService

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


# ── Service helpers ──────────────────────────────────────────────────────


def resolve_settings(database: str | None = None) -> RegShoSettings:
    """Environment settings, with ``--database`` taking precedence."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_path": Path(database)})
    return settings


def build_service(settings: RegShoSettings) -> ShortVolumeService:
    """Create the production service for *settings*."""
    return ShortVolumeService.from_settings(settings)


def run_with_service(
    database: str | None, fn: Callable[[ShortVolumeService], Awaitable[T] | T]
) -> T:
    """Open a service, run *fn* on a fresh event loop, always close."""

    async def runner() -> T:
        async with build_service(resolve_settings(database)) as service:
            result = fn(service)
            if inspect.isawaitable(result):
                result = await result
            return result

    return asyncio.run(runner())


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_data(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a result object or list of results to the terminal."""
    if as_json:
        if isinstance(data, list | tuple):
            payload: Any = [d if isinstance(d, str) else _to_dict(d) for d in data]
        else:
            payload = _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        if isinstance(data[0], str):
            data = [{"value": item} for item in data]
        _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def output_ingest(result: IngestResult, *, as_json: bool = False) -> None:
    """Render an ingestion result; exit 1 only for real errors."""
    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
    elif result.already_current:
        console.print(f"[bold green]OK[/bold green] {result.date}: already current")
    elif result.success:
        console.print(
            f"[bold green]OK[/bold green] {result.date}: "
            f"{result.count} records ({result.inserted} new)"
        )
    elif result.no_data:
        console.print(
            f"[yellow]No data[/yellow] available for {result.date} ({result.reason})"
        )
    else:
        err_console.print(
            f"[bold red]Error[/bold red] ({result.reason}) {result.date}: {result.error}"
        )

    if result.failed:
        raise typer.Exit(code=1)


def fail(message: str) -> None:
    """Print an error and exit 1."""
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=1)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")

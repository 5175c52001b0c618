"""Fetch command: run one query through the ingestion pipeline."""

from __future__ import annotations

import asyncio
import json

import typer
from pydantic import ValidationError

from ...models import IngestionResult, PerformanceQuery
from ..context import CommandContext
from ..display.errors import CLIError, handle_cli_error
from ..display.records import create_records_table, describe_result


def _build_query(
    context: CommandContext,
    state: str | None,
    district: str | None,
    month: str | None,
    year: str | None,
    limit: int | None,
) -> PerformanceQuery:
    try:
        return PerformanceQuery(
            state=state,
            district=district,
            month=month,
            fin_year=year,
            limit=limit or context.config.upstream.default_limit,
        )
    except ValidationError as e:
        raise CLIError(f"Invalid query: {e.errors()[0]['msg']}", exit_code=2) from e


async def _run(context: CommandContext, query: PerformanceQuery) -> IngestionResult:
    # Each invocation builds a fresh in-memory cache; the local store is what persists.
    async with context.build_pipeline() as pipeline:
        return await pipeline.get_or_fetch(query)


@handle_cli_error
def fetch(
    ctx: typer.Context,
    state: str | None = typer.Option(None, "--state", "-s", help="State name"),
    district: str | None = typer.Option(None, "--district", "-d", help="District name"),
    month: str | None = typer.Option(None, "--month", "-m", help="Month, e.g. 'Dec'"),
    year: str | None = typer.Option(None, "--year", "-y", help="Financial year, e.g. '2024-2025'"),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Maximum rows to request"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Fetch performance records from cache, local store or data.gov.in."""
    context: CommandContext = ctx.obj
    query = _build_query(context, state, district, month, year, limit)
    context.logger.info(f"Fetching performance data for {query.cache_key()!r}")

    result = asyncio.run(_run(context, query))

    if as_json:
        context.console.print_json(json.dumps(result.to_dict()))
    else:
        if result.records:
            context.console.print(create_records_table(result.records))
        context.console.print(describe_result(result))
        if result.note:
            context.console.print(f"[yellow]{result.note}[/yellow]")
        if result.error:
            context.console.print(f"[red]✗ {result.error.value}: {result.message}[/red]")

    if result.error:
        raise typer.Exit(code=1)


@handle_cli_error
def cache_key(
    ctx: typer.Context,
    state: str | None = typer.Option(None, "--state", "-s"),
    district: str | None = typer.Option(None, "--district", "-d"),
    month: str | None = typer.Option(None, "--month", "-m"),
    year: str | None = typer.Option(None, "--year", "-y"),
    limit: int | None = typer.Option(None, "--limit", "-l"),
) -> None:
    """Print the cache fingerprint of a query."""
    context: CommandContext = ctx.obj
    query = _build_query(context, state, district, month, year, limit)
    context.console.print(query.cache_key(), markup=False, highlight=False)


def register_command(main_app: typer.Typer) -> None:
    """Register fetch commands with main app."""
    main_app.command("fetch")(fetch)
    main_app.command("cache-key")(cache_key)

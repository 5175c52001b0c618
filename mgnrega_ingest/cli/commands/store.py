"""Commands that inspect the local record store."""

from __future__ import annotations

import typer
from rich.table import Table

from ..context import CommandContext
from ..display.errors import CLIError, handle_cli_error


def _require_store(context: CommandContext):
    store = context.open_store()
    if store is None:
        raise CLIError(
            "The local store is disabled",
            suggestions=["Set store.enabled: true or MGNREGA__STORE__ENABLED=true"],
        )
    return store


def _print_names(context: CommandContext, title: str, names: list[str]) -> None:
    if not names:
        context.console.print(f"[yellow]No {title.lower()} in the local store[/yellow]")
        return
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    for name in names:
        table.add_row(name)
    context.console.print(table)


@handle_cli_error
def states(ctx: typer.Context) -> None:
    """List states that have stored records."""
    context: CommandContext = ctx.obj
    store = _require_store(context)
    try:
        _print_names(context, "States", store.list_states())
    finally:
        store.client.close()


@handle_cli_error
def districts(
    ctx: typer.Context,
    state: str = typer.Argument(..., help="State whose districts to list"),
) -> None:
    """List districts of a state that have stored records."""
    context: CommandContext = ctx.obj
    store = _require_store(context)
    try:
        _print_names(context, f"Districts of {state}", store.list_districts(state))
    finally:
        store.client.close()


def register_command(main_app: typer.Typer) -> None:
    """Register store commands with main app."""
    main_app.command("states")(states)
    main_app.command("districts")(districts)

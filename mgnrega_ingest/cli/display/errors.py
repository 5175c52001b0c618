"""Rendering and exit-code mapping for errors raised inside CLI commands."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ...exceptions import ConfigurationError, IngestionError


if TYPE_CHECKING:
    from ..context import CommandContext


CONFIG_HINTS = [
    "Check that config/base.yaml exists and parses as YAML",
    "Look for bad MGNREGA__SECTION__KEY environment overrides",
    "Pass --config-dir when running outside the project root",
]
TRANSIENT_HINTS = ["Upstream looked temporarily unavailable; try again shortly"]


class CLIError(Exception):
    """A user-facing failure with its own exit code and hints.

    Raise it from a command for problems the user can fix (bad option values,
    store disabled); ``handle_error`` prints ``suggestions`` under the message.
    """

    def __init__(self, message: str, exit_code: int = 1, suggestions: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.suggestions = list(suggestions or [])


def _suggestions_for(error: Exception) -> list[str]:
    if isinstance(error, CLIError):
        return error.suggestions
    if isinstance(error, ConfigurationError):
        return CONFIG_HINTS
    if isinstance(error, IngestionError) and error.retryable:
        return TRANSIENT_HINTS
    return []


def _exit_code_for(error: Exception) -> int:
    if isinstance(error, CLIError):
        return error.exit_code
    if isinstance(error, ConfigurationError):
        return 2
    return 1


def format_error(error: Exception, include_suggestions: bool = True) -> Panel:
    """Red panel with the message, the error type and any numbered hints."""
    body = Text.assemble(("✗ ", "bold red"), (getattr(error, "message", str(error)), "red"))
    if type(error) is not Exception:
        body.append(f"\n\nType: {type(error).__name__}", style="dim")

    hints = _suggestions_for(error) if include_suggestions else []
    if hints:
        body.append("\n\nSuggested fixes:", style="bold yellow")
        for number, hint in enumerate(hints, start=1):
            body.append(f"\n  {number}. {hint}", style="yellow")

    return Panel(body, title="Error", border_style="red")


def handle_error(
    error: Exception,
    context: CommandContext | None = None,
    exit_code: int | None = None,
) -> None:
    """Print ``error`` and leave with ``exit_code``, or the code mapped from its type."""
    console = context.console if context else Console(stderr=True)
    console.print(format_error(error))
    raise typer.Exit(code=exit_code if exit_code is not None else _exit_code_for(error))


def handle_cli_error(func: Any) -> Any:
    """Route any exception a command raises through ``handle_error``.

    ``typer.Exit`` passes through so commands can still choose their own code.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            handle_error(e, context=getattr(kwargs.get("ctx"), "obj", None))

    return wrapper

"""`mgnrega-ingest` command line entry point."""

from __future__ import annotations

from pathlib import Path

import typer

from ..utils.logging_config import configure_logging_from_config, setup_logging
from .display.errors import handle_error


app = typer.Typer(
    name="mgnrega-ingest",
    help="MGNREGA district performance ingestion CLI",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
    environment: str | None = typer.Option(
        None, "--env", "-e", help="Configuration environment (development, test, ...)"
    ),
    config_dir: Path | None = typer.Option(
        None,
        "--config-dir",
        envvar="MGNREGA_CONFIG_DIR",
        help="Directory holding base.yaml and environment overrides",
    ),
) -> None:
    """Fetch MGNREGA district performance records from data.gov.in.

    Requests go through the response cache, the local store and the rate
    limiter; the store commands list what has been saved so far.
    """
    level = "DEBUG" if verbose else None
    # Stderr sink until the configured one replaces it; config errors still get logged.
    setup_logging(level=level or "INFO", include_stage=False, include_run_id=False)

    from .context import CommandContext

    try:
        ctx.obj = CommandContext.create(environment=environment, config_dir=config_dir)
    except Exception as e:
        handle_error(e, exit_code=2)

    configure_logging_from_config(ctx.obj.config, level=level)


from .commands import fetch, store  # noqa: E402


fetch.register_command(app)
store.register_command(app)


if __name__ == "__main__":
    app()

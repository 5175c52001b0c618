"""Loguru sinks for the ingestion pipeline.

Pipeline components log through the global loguru ``logger``; lines are tagged
with stage and run id extras through ``log_with_context``. The rest of this
module only decides where those lines go and how they look.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger


if TYPE_CHECKING:
    from ..config.schemas import PipelineConfig

FALLBACK_LEVEL = "INFO"


def _text_format(include_stage: bool, include_run_id: bool, include_timestamps: bool) -> str:
    columns = []
    if include_timestamps:
        columns.append("<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>")
    columns.append("<level>{level: <8}</level>")
    if include_stage:
        columns.append("<cyan>{extra[stage]: <8}</cyan>")
    if include_run_id:
        columns.append("<magenta>{extra[run_id]: <8}</magenta>")
    columns.append("<level>{message}</level>")
    return " | ".join(columns)


def _known_level(level: str) -> bool:
    try:
        logger.level(level)
    except ValueError:
        return False
    return True


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    file_path: str | None = None,
    max_file_size_mb: int = 100,
    backup_count: int = 5,
    include_stage: bool = True,
    include_run_id: bool = True,
    include_timestamps: bool = True,
) -> None:
    """Replace all sinks with a stderr sink and, optionally, a rotating file.

    ``format_type="json"`` serializes each record (loguru ``serialize=True``).
    An unknown level name falls back to INFO with a warning instead of raising.
    """
    logger.remove()
    # Default extras so the format never misses a key for unbound loggers.
    logger.configure(extra={"stage": "-", "run_id": "-"})

    effective_level = level if _known_level(level) else FALLBACK_LEVEL
    as_json = format_type == "json"
    sink_format = "{message}" if as_json else _text_format(
        include_stage, include_run_id, include_timestamps
    )

    logger.add(
        sys.stderr,
        level=effective_level,
        format=sink_format,
        serialize=as_json,
        colorize=not as_json,
    )

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            level=effective_level,
            format=sink_format,
            serialize=as_json,
            rotation=f"{max_file_size_mb} MB",
            retention=backup_count,
            encoding="utf-8",
        )

    if effective_level != level:
        logger.warning(f"Invalid logging level '{level}' provided; falling back to 'INFO'")


def configure_logging_from_config(
    config: PipelineConfig | None = None, level: str | None = None
) -> None:
    """Configure logging from the given (or current) configuration.

    `level` overrides the configured level (the CLI uses it for --verbose).
    """
    if config is None:
        from ..config.loader import get_config

        config = get_config()

    settings = config.logging
    setup_logging(
        level=level or settings.level,
        format_type=settings.format,
        file_path=settings.file_path,
        max_file_size_mb=settings.max_file_size_mb,
        backup_count=settings.backup_count,
        include_stage=settings.include_stage,
        include_run_id=settings.include_run_id,
        include_timestamps=settings.include_timestamps,
    )


@contextmanager
def log_with_context(stage: str | None = None, run_id: str | None = None) -> Iterator[Any]:
    """Tag every line logged inside the block with ``stage`` and ``run_id``.

    Also applies to code that logs through the global ``logger``, including
    work awaited inside the block. Yields a logger bound with the same extras.
    """
    extras = {name: value for name, value in (("stage", stage), ("run_id", run_id)) if value}
    with logger.contextualize(**extras):
        yield logger.bind(**extras)

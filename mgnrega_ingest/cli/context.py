"""Per-invocation state handed to every command through `ctx.obj`."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from rich.console import Console

from ..config.schemas import PipelineConfig
from ..loaders import PerformanceStore
from ..pipeline import IngestionPipeline
from ..utils.duckdb_client import DuckDBClient


@dataclass
class CommandContext:
    """Loaded configuration, the output console and a short id for this invocation.

    `logger` is bound with the run id and environment so command logs can be
    told apart from pipeline logs.
    """

    config: PipelineConfig
    console: Console
    run_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def __post_init__(self) -> None:
        self.logger = logger.bind(
            component="cli",
            run_id=self.run_id,
            environment=self.config.pipeline.environment,
        )

    @classmethod
    def create(
        cls,
        config: PipelineConfig | None = None,
        environment: str | None = None,
        config_dir: Path | None = None,
    ) -> CommandContext:
        """Build a context, loading configuration from disk unless `config` is given."""
        from ..config.loader import get_config

        if config is None:
            config = get_config(environment=environment, config_dir=config_dir)

        context = cls(config=config, console=Console())
        context.logger.debug("CLI session started")
        return context

    def build_pipeline(self) -> IngestionPipeline:
        return IngestionPipeline.from_config(self.config)

    def open_store(self) -> PerformanceStore | None:
        """Open the configured local store, or None when it is disabled."""
        if not self.config.store.enabled:
            return None
        return PerformanceStore(
            DuckDBClient(self.config.store.database_path),
            table_name=self.config.store.table_name,
        )

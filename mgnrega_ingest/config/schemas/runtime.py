"""Runtime-supporting configuration schemas (logging, local store, normalizer)."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


FORMAT_ALIASES = {
    "text": "text",
    "plain": "text",
    "pretty": "text",
    "json": "json",
    "structured": "json",
}


class LoggingConfig(BaseModel):
    """Where pipeline logs go and which extras each text line shows."""

    level: str = Field(default="INFO", description="Loguru level name")
    format: str = Field(default="text", description="text, or json for serialized records")
    file_path: str | None = Field(default=None, description="Rotating log file, if any")
    max_file_size_mb: int = Field(default=100, ge=1)
    backup_count: int = Field(default=5, ge=0)
    include_stage: bool = True
    include_run_id: bool = True
    include_timestamps: bool = True

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("format")
    @classmethod
    def _canonical_format(cls, value: str) -> str:
        return FORMAT_ALIASES.get(value.lower(), value)


class StoreConfig(BaseModel):
    """Local DuckDB store for normalized records."""

    enabled: bool = Field(default=True, description="Serve and persist via the local store")
    database_path: str = Field(default=":memory:", description="DuckDB file, or :memory:")
    table_name: str = Field(default="performance_records")

    @field_validator("table_name")
    @classmethod
    def _validate_identifier(cls, value: str) -> str:
        if not value.replace("_", "").isalnum():
            raise ValueError(f"table_name must be a plain identifier, got {value!r}")
        return value


class NormalizerConfig(BaseModel):
    """Record normalization switches."""

    derive_persondays_from_components: bool = Field(
        default=True,
        description="Approximate total persondays from women/SC/ST components when absent",
    )

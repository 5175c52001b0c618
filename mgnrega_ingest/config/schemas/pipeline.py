"""Top-level configuration model; one field per YAML section."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .runtime import LoggingConfig, NormalizerConfig, StoreConfig
from .upstream import CacheConfig, FallbackConfig, RateLimitConfig, UpstreamConfig


class PipelineMetadata(BaseModel):
    """Metadata for the configured pipeline."""

    name: str = Field(default="mgnrega-ingest", description="Pipeline identifier")
    version: str = Field(default="0.1.0", description="Semantic version of the pipeline")
    environment: str = Field(default="development", description="Active environment name")

    model_config = ConfigDict(extra="allow")


class PipelineConfig(BaseModel):
    """Everything `get_config` validates: upstream access, throttling, caching, storage and logging."""

    pipeline: PipelineMetadata = Field(default_factory=PipelineMetadata)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        validate_assignment=True,
        extra="allow",
    )


__all__ = ["PipelineConfig", "PipelineMetadata"]

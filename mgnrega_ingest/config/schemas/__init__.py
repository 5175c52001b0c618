"""Modular configuration schemas for the ingestion pipeline."""

from .pipeline import PipelineConfig, PipelineMetadata
from .runtime import LoggingConfig, NormalizerConfig, StoreConfig
from .upstream import CacheConfig, FallbackConfig, RateLimitConfig, UpstreamConfig


__all__ = [
    "CacheConfig",
    "FallbackConfig",
    "LoggingConfig",
    "NormalizerConfig",
    "PipelineConfig",
    "PipelineMetadata",
    "RateLimitConfig",
    "StoreConfig",
    "UpstreamConfig",
]

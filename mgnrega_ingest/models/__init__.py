"""Data models for canonical records, queries and component results."""

from .performance import (
    METRIC_FIELDS,
    CanonicalRecord,
    PerformanceQuery,
    StoredPerformanceRecord,
)
from .results import (
    CachedResponse,
    FailureKind,
    FallbackOutcome,
    FallbackStage,
    FetchFailure,
    FetchResult,
    FetchSuccess,
    IngestionResult,
    NormalizedBatch,
    RecordSource,
)


__all__ = [
    "METRIC_FIELDS",
    "CachedResponse",
    "CanonicalRecord",
    "FailureKind",
    "FallbackOutcome",
    "FallbackStage",
    "FetchFailure",
    "FetchResult",
    "FetchSuccess",
    "IngestionResult",
    "NormalizedBatch",
    "PerformanceQuery",
    "RecordSource",
    "StoredPerformanceRecord",
]

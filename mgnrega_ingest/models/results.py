"""Tagged result types passed between pipeline components.

Components signal failure through these values instead of raising, so the
orchestrator branches on structure rather than on message contents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..exceptions import IngestionError
from .performance import CanonicalRecord


class FailureKind(str, Enum):
    """Why a fetch or an ingestion produced no usable data."""

    MISSING_CREDENTIAL = "missing_credential"
    TRANSIENT_FETCH_FAILURE = "transient_fetch_failure"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_PAYLOAD = "malformed_payload"
    RATE_LIMITED = "rate_limited"
    NO_DATA = "no_data"


class FallbackStage(str, Enum):
    """How far the query had to be widened before data appeared."""

    SCOPED = "scoped"
    STATE_ONLY = "state_only"
    UNFILTERED = "unfiltered"
    EXHAUSTED = "exhausted"

    @property
    def broadened(self) -> bool:
        return self is not FallbackStage.SCOPED


class RecordSource(str, Enum):
    CACHE = "cache"
    STORE = "store"
    UPSTREAM = "upstream"
    NONE = "none"


@dataclass(frozen=True)
class FetchSuccess:
    """A parsed upstream response."""

    payload: dict[str, Any]
    body: str
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FetchFailure:
    """A fetch that produced no payload."""

    kind: FailureKind
    message: str
    attempts: int = 0
    error: IngestionError | None = None

    @property
    def ok(self) -> bool:
        return False


FetchResult = FetchSuccess | FetchFailure


@dataclass(frozen=True)
class FallbackOutcome:
    """Final payload of the widening state machine and the stage it ended in."""

    result: FetchResult
    stage: FallbackStage
    stages_tried: tuple[FallbackStage, ...] = ()

    @property
    def broadened(self) -> bool:
        return self.stage.broadened


@dataclass(frozen=True)
class NormalizedBatch:
    """Records recovered from one payload.

    ``records_key`` is the top-level key the entries were found under, or
    ``None`` when no candidate key held an array (a malformed payload).
    """

    records: tuple[CanonicalRecord, ...]
    rejected_count: int
    records_key: str | None

    @property
    def malformed(self) -> bool:
        return self.records_key is None

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class CachedResponse:
    """What the pipeline memoizes per query fingerprint."""

    body: str
    stage: FallbackStage = FallbackStage.SCOPED


@dataclass
class IngestionResult:
    """Outcome of one `get_or_fetch` call, always returned, never raised."""

    records: list[CanonicalRecord]
    source: RecordSource
    stage: FallbackStage | None = None
    rejected_count: int = 0
    error: FailureKind | None = None
    message: str | None = None
    note: str | None = None
    persisted: bool = False
    raw_response: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def broadened(self) -> bool:
        return self.stage is not None and self.stage.broadened

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": [record.model_dump(mode="json") for record in self.records],
            "source": self.source.value,
            "stage": self.stage.value if self.stage else None,
            "broadened": self.broadened,
            "rejected_count": self.rejected_count,
            "error": self.error.value if self.error else None,
            "message": self.message,
            "note": self.note,
            "persisted": self.persisted,
        }

"""Tests for queries, canonical records and result types."""

import pytest
from pydantic import ValidationError

from mgnrega_ingest.models import (
    CanonicalRecord,
    FailureKind,
    FallbackStage,
    FetchFailure,
    FetchSuccess,
    IngestionResult,
    PerformanceQuery,
    RecordSource,
)


pytestmark = pytest.mark.fast


class TestPerformanceQuery:
    def test_cache_key_with_state_only(self):
        assert PerformanceQuery(state="Uttar Pradesh").cache_key() == "Uttar Pradesh||||12"

    def test_cache_key_full(self):
        query = PerformanceQuery(
            state="Bihar", district="Patna", month="Dec", fin_year="2024-2025", limit=50
        )
        assert query.cache_key() == "Bihar|Patna|Dec|2024-2025|50"

    def test_cache_key_separator_in_values_does_not_collide(self):
        left = PerformanceQuery(state="A|B", district="C")
        right = PerformanceQuery(state="A", district="B|C")

        assert left.cache_key() != right.cache_key()
        assert left.cache_key() == r"A\|B|C|||12"

    def test_blank_equals_absent(self):
        assert PerformanceQuery(state="Bihar", district="  ").cache_key() == (
            PerformanceQuery(state="Bihar").cache_key()
        )

    def test_is_fully_scoped(self):
        assert PerformanceQuery(state="Bihar", district="Patna").is_fully_scoped
        assert not PerformanceQuery(state="Bihar").is_fully_scoped
        assert not PerformanceQuery(district="Patna").is_fully_scoped

    def test_upstream_filters(self):
        query = PerformanceQuery(state="Bihar", month="Dec")
        assert query.upstream_filters() == {
            "filters[state_name]": "Bihar",
            "filters[month]": "Dec",
        }

    def test_widened_revalidates(self):
        query = PerformanceQuery(state="Bihar", district="Patna", limit=5)

        widened = query.widened(district=" ", limit=100)

        assert widened.district is None
        assert widened.limit == 100
        assert query.district == "Patna"

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            PerformanceQuery(limit=0)


class TestCanonicalRecord:
    def test_geography_required(self):
        with pytest.raises(ValidationError):
            CanonicalRecord(state_name="Bihar", district_name=" ")

    def test_blank_period_is_none(self):
        record = CanonicalRecord(state_name="Bihar", district_name="Patna", month=" ")
        assert record.month is None

    def test_frozen(self):
        record = CanonicalRecord(state_name="Bihar", district_name="Patna")
        with pytest.raises(ValidationError):
            record.households_worked = 5

    def test_has_metrics(self):
        assert CanonicalRecord(state_name="B", district_name="P", ongoing_works=0).has_metrics()


class TestResults:
    def test_fetch_result_tags(self):
        assert FetchSuccess(payload={}, body="{}").ok is True
        assert FetchFailure(FailureKind.EMPTY_RESPONSE, "empty").ok is False

    def test_stage_broadened(self):
        assert FallbackStage.SCOPED.broadened is False
        assert FallbackStage.STATE_ONLY.broadened is True

    def test_ingestion_result_to_dict(self):
        record = CanonicalRecord(state_name="Bihar", district_name="Patna", avg_wage_rate=230.5)
        result = IngestionResult(
            records=[record],
            source=RecordSource.UPSTREAM,
            stage=FallbackStage.STATE_ONLY,
            rejected_count=1,
        )

        data = result.to_dict()

        assert data["source"] == "upstream"
        assert data["stage"] == "state_only"
        assert data["broadened"] is True
        assert data["error"] is None
        assert data["records"][0]["avg_wage_rate"] == 230.5

    def test_error_result(self):
        result = IngestionResult(records=[], source=RecordSource.NONE, error=FailureKind.RATE_LIMITED)

        assert result.ok is False
        assert result.to_dict()["error"] == "rate_limited"

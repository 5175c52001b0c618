"""End-to-end ingestion through real components with a mocked upstream."""

import asyncio
from unittest.mock import Mock

import pytest

from mgnrega_ingest.extractors.data_gov import DataGovClient
from mgnrega_ingest.loaders import PerformanceStore
from mgnrega_ingest.models import FailureKind, FallbackStage, PerformanceQuery, RecordSource
from mgnrega_ingest.pipeline import IngestionPipeline
from mgnrega_ingest.utils.duckdb_client import DuckDBClient
from mgnrega_ingest.utils.rate_limiter import RateLimiter


pytestmark = pytest.mark.integration


@pytest.fixture
def store(tmp_path):
    client = DuckDBClient(str(tmp_path / "mgnrega.duckdb"))
    yield PerformanceStore(client)
    client.close()


@pytest.fixture
def limiter():
    return Mock(wraps=RateLimiter(capacity=10, window_seconds=60))


@pytest.fixture
def pipeline_factory(pipeline_config, store, limiter):
    def _factory(upstream):
        client = DataGovClient(pipeline_config.upstream, http_client=upstream.client())
        return IngestionPipeline(
            client, config=pipeline_config, store=store, rate_limiter=limiter
        )

    return _factory


class TestIngestionEndToEnd:
    @pytest.mark.asyncio
    async def test_fresh_state_query_persists_and_caches(
        self, pipeline_factory, mock_upstream_factory, up_payload, store
    ):
        upstream = mock_upstream_factory([up_payload])
        pipeline = pipeline_factory(upstream)

        result = await pipeline.get_or_fetch(state="Uttar Pradesh")

        assert result.source is RecordSource.UPSTREAM
        assert result.stage is FallbackStage.SCOPED
        assert result.persisted is True
        assert len(result.records) == 2
        assert store.count() == 2
        assert "Uttar Pradesh||||12" in pipeline.cache

        persondays = {r.district_name: r.persondays_generated for r in store.records_for_state("Uttar Pradesh")}
        assert persondays == {"AGRA": 2500000, "ALIGARH": 1800000}
        agra = next(r for r in result.records if r.district_name == "AGRA")
        assert agra.women_persondays_percent == 40.0

    @pytest.mark.asyncio
    async def test_repeat_within_ttl_served_from_cache(
        self, pipeline_factory, mock_upstream_factory, up_payload, limiter
    ):
        upstream = mock_upstream_factory([up_payload])
        pipeline = pipeline_factory(upstream)

        first = await pipeline.get_or_fetch(state="Uttar Pradesh")
        second = await pipeline.get_or_fetch(state="Uttar Pradesh")

        assert second.source is RecordSource.CACHE
        assert second.records == first.records
        assert second.raw_response == first.raw_response
        assert upstream.calls == 1
        assert limiter.allow.call_count == 1

    @pytest.mark.asyncio
    async def test_denied_with_empty_store(self, pipeline_factory, mock_upstream_factory, limiter):
        upstream = mock_upstream_factory()
        limiter.allow.side_effect = None
        limiter.allow.return_value = False
        pipeline = pipeline_factory(upstream)

        result = await pipeline.get_or_fetch(state="Uttar Pradesh")

        assert result.error is FailureKind.RATE_LIMITED
        assert result.records == []
        assert upstream.calls == 0

    @pytest.mark.asyncio
    async def test_broadened_result_serves_later_district_lookup(
        self, pipeline_factory, mock_upstream_factory, up_payload
    ):
        upstream = mock_upstream_factory([{"records": [], "total": 0}, up_payload])
        pipeline = pipeline_factory(upstream)

        broadened = await pipeline.get_or_fetch(state="Uttar Pradesh", district="Aligarh ")
        assert broadened.stage is FallbackStage.STATE_ONLY
        assert broadened.broadened is True
        assert broadened.note is not None
        assert "filters[district_name]" not in upstream.params(1)

        stored = await pipeline.get_or_fetch(state="Uttar Pradesh", district="Agra")
        assert stored.source is RecordSource.STORE
        assert [r.district_name for r in stored.records] == ["AGRA"]
        assert upstream.calls == 2

    @pytest.mark.asyncio
    async def test_unfiltered_fallback_narrows_to_state(
        self, pipeline_factory, mock_upstream_factory, up_entries
    ):
        everything = {"records": [{"state_name": "BIHAR", "district_name": "PATNA"}, *up_entries]}
        upstream = mock_upstream_factory([{"records": []}, {"records": []}, everything])
        pipeline = pipeline_factory(upstream)

        result = await pipeline.get_or_fetch(state="uttar pradesh", district="Nowhere")

        assert result.stage is FallbackStage.UNFILTERED
        assert {r.state_name for r in result.records} == {"UTTAR PRADESH"}
        assert upstream.params(2)["limit"] == "500"

    @pytest.mark.asyncio
    async def test_concurrent_callers_respect_capacity(
        self, pipeline_config, store, mock_upstream_factory, up_payload
    ):
        upstream = mock_upstream_factory([up_payload])
        client = DataGovClient(pipeline_config.upstream, http_client=upstream.client())
        pipeline = IngestionPipeline(
            client,
            config=pipeline_config,
            store=store,
            rate_limiter=RateLimiter(capacity=3, window_seconds=60),
        )
        queries = [PerformanceQuery(state=f"State {i}") for i in range(6)]

        results = await asyncio.gather(*(pipeline.get_or_fetch(q) for q in queries))

        assert upstream.calls == 3
        assert sum(r.error is FailureKind.RATE_LIMITED for r in results) == 3

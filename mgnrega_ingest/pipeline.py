"""Ingestion pipeline orchestrator.

Composes the components behind one call, `get_or_fetch`:

    cache -> local store -> admission -> fetch -> fallback -> normalize
          -> persist -> cache

Component failures never escape: every path ends in an IngestionResult
tagged with its source, and with an error kind only when no data at all
could be produced.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from uuid import uuid4

import httpx
from loguru import logger

from .config.schemas import PipelineConfig
from .exceptions import LoadError
from .extractors.data_gov import DataGovClient, FallbackResolver
from .loaders import PerformanceStore
from .models import (
    CachedResponse,
    CanonicalRecord,
    FailureKind,
    FallbackStage,
    FetchFailure,
    FetchResult,
    FetchSuccess,
    IngestionResult,
    NormalizedBatch,
    PerformanceQuery,
    RecordSource,
)
from .transformers import RecordNormalizer
from .utils.cache import ResponseCache
from .utils.duckdb_client import DuckDBClient
from .utils.logging_config import log_with_context
from .utils.rate_limiter import RateLimiter


RATE_LIMITED_NOTE = "Rate limited - showing stored data"
UPSTREAM_FAILED_NOTE = "Upstream unavailable - showing stored data"
BROADENED_NOTE = "No exact match upstream - showing broadened results ({stage})"
NOT_PERSISTED_NOTE = "Records could not be saved to the local store"


class IngestionPipeline:
    """Serve performance records from cache, local store or data.gov.in.

    Components are injected so each instance owns its own limiter and cache
    state; use `from_config` to build the standard set.
    """

    def __init__(
        self,
        client: DataGovClient,
        *,
        config: PipelineConfig | None = None,
        normalizer: RecordNormalizer | None = None,
        rate_limiter: RateLimiter | None = None,
        cache: ResponseCache | None = None,
        store: PerformanceStore | None = None,
        fallback: FallbackResolver | None = None,
    ):
        self.config = config or PipelineConfig()
        self.client = client
        self.normalizer = normalizer or RecordNormalizer(self.config.normalizer)
        if rate_limiter is None:
            rate_limiter = RateLimiter(
                capacity=self.config.rate_limit.capacity,
                window_seconds=self.config.rate_limit.window_seconds,
            )
        if cache is None:
            cache = ResponseCache(
                default_ttl_seconds=self.config.cache.ttl_seconds,
                enabled=self.config.cache.enabled,
            )
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.store = store
        self.fallback = fallback or FallbackResolver(
            self._fetch, self.config.fallback, has_data=self._has_usable_records
        )
        self._log = logger.bind(stage="ingest")

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig | None = None,
        *,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> IngestionPipeline:
        """Build a pipeline and all of its components from configuration."""
        if config is None:
            from .config.loader import get_config

            config = get_config()

        client = DataGovClient(config.upstream, api_key=api_key, http_client=http_client)
        store = None
        if config.store.enabled:
            store = PerformanceStore(
                DuckDBClient(config.store.database_path), table_name=config.store.table_name
            )
        return cls(client, config=config, store=store)

    async def aclose(self) -> None:
        await self.client.aclose()
        if self.store is not None:
            self.store.client.close()

    async def __aenter__(self) -> IngestionPipeline:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def invalidate(self, query: PerformanceQuery) -> bool:
        """Drop the cached response for `query` so the next call refetches."""
        removed = self.cache.invalidate(query.cache_key())
        if removed:
            self._log.info(f"Invalidated cache entry {query.cache_key()!r}")
        return removed

    async def get_or_fetch(
        self, query: PerformanceQuery | None = None, **filters: Any
    ) -> IngestionResult:
        """Return records for a query, fetching upstream only when needed.

        Accepts a PerformanceQuery or its fields as keyword arguments
        (state, district, month, fin_year, limit).
        """
        if query is None:
            query = PerformanceQuery(**filters)

        with log_with_context(stage="ingest", run_id=uuid4().hex[:8]):
            return await self._get_or_fetch(query)

    async def _get_or_fetch(self, query: PerformanceQuery) -> IngestionResult:
        cache_key = query.cache_key()

        cached = self.cache.get(cache_key)
        if cached is not None:
            self._log.info(f"Returning cached data for key: {cache_key}")
            return self._from_cache(cached)

        if self.store is not None and query.is_fully_scoped:
            stored = await self._stored_records(query)
            if stored:
                self._log.info(f"Returning {len(stored)} records from local store")
                return IngestionResult(records=stored, source=RecordSource.STORE)

        if not self.rate_limiter.allow(self.config.rate_limit.key):
            self._log.warning("Rate limit exceeded, returning stored data if available")
            return await self._degraded(
                query,
                FailureKind.RATE_LIMITED,
                "Rate limit exceeded. Please try again later.",
                RATE_LIMITED_NOTE,
            )

        result = await self._fetch(query, query.limit)
        stage = FallbackStage.SCOPED
        if query.is_fully_scoped and self._needs_fallback(result):
            outcome = await self.fallback.resolve(query, scoped_result=result)
            result, stage = outcome.result, outcome.stage

        if isinstance(result, FetchFailure):
            return await self._degraded(query, result.kind, result.message, UPSTREAM_FAILED_NOTE)

        batch = self.normalizer.normalize_batch(result.payload)
        if batch.malformed:
            return IngestionResult(
                records=[],
                source=RecordSource.UPSTREAM,
                stage=stage,
                error=FailureKind.MALFORMED_PAYLOAD,
                message="Upstream payload has no records array",
                raw_response=result.body,
                details={"available_keys": sorted(result.payload)},
            )

        ingestion = self._from_batch(batch, RecordSource.UPSTREAM, stage, result.body)
        if not batch.records:
            if self.store is not None and query.state:
                stored = await self._stored_records(query)
                if stored:
                    return IngestionResult(
                        records=stored,
                        source=RecordSource.STORE,
                        stage=stage,
                        note="No upstream data - showing stored data",
                    )
            return ingestion

        if self.store is not None:
            ingestion.persisted = await self._persist(batch.records)
            if not ingestion.persisted:
                ingestion.note = NOT_PERSISTED_NOTE

        self.cache.put(cache_key, CachedResponse(body=result.body, stage=stage))
        return ingestion

    async def _fetch(self, query: PerformanceQuery, limit: int) -> FetchResult:
        return await self.client.fetch_query(query, limit=limit)

    def _has_usable_records(self, result: FetchResult | None) -> bool:
        if not isinstance(result, FetchSuccess):
            return False
        return bool(self.normalizer.normalize_batch(result.payload).records)

    def _needs_fallback(self, result: FetchResult) -> bool:
        """Widen only for an empty answer; a failing upstream is not retried harder."""
        if isinstance(result, FetchFailure):
            return result.kind is FailureKind.EMPTY_RESPONSE
        batch = self.normalizer.normalize_batch(result.payload)
        return not batch.malformed and not batch.records

    def _from_cache(self, cached: CachedResponse) -> IngestionResult:
        try:
            payload = json.loads(cached.body)
        except json.JSONDecodeError:
            payload = None
        batch = self.normalizer.normalize_batch(payload)
        return self._from_batch(batch, RecordSource.CACHE, cached.stage, cached.body)

    def _from_batch(
        self,
        batch: NormalizedBatch,
        source: RecordSource,
        stage: FallbackStage,
        body: str,
    ) -> IngestionResult:
        ingestion = IngestionResult(
            records=list(batch.records),
            source=source,
            stage=stage,
            rejected_count=batch.rejected_count,
            raw_response=body,
        )
        if not batch.records:
            ingestion.error = FailureKind.NO_DATA
            ingestion.message = "No data available from upstream or local store"
        elif stage.broadened:
            ingestion.note = BROADENED_NOTE.format(stage=stage.value)
        return ingestion

    async def _degraded(
        self, query: PerformanceQuery, kind: FailureKind, message: str, note: str
    ) -> IngestionResult:
        """Serve stored data in place of a failed upstream call, if any exists."""
        if self.store is not None and query.state:
            stored = await self._stored_records(query)
            if stored:
                return IngestionResult(
                    records=stored,
                    source=RecordSource.STORE,
                    note=note,
                    details={"upstream_error": kind.value},
                )
        return IngestionResult(records=[], source=RecordSource.NONE, error=kind, message=message)

    async def _stored_records(self, query: PerformanceQuery) -> list[CanonicalRecord]:
        """District rows for scoped queries, state rows for state-only queries."""
        assert self.store is not None
        try:
            if query.district:
                return list(
                    await asyncio.to_thread(
                        self.store.records_for_district, query.state, query.district, query.limit
                    )
                )
            return list(
                await asyncio.to_thread(self.store.records_for_state, query.state, query.limit)
            )
        except LoadError as e:
            self._log.error(f"Local store lookup failed: {e.message}")
            return []

    async def _persist(self, records: tuple[CanonicalRecord, ...]) -> bool:
        assert self.store is not None
        try:
            await asyncio.to_thread(self.store.save_batch, records)
        except LoadError as e:
            self._log.error(f"Failed to persist {len(records)} records: {e.message}")
            return False
        return True


__all__ = ["IngestionPipeline"]

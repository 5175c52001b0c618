"""Progressive query widening for scoped fetches that come back empty.

The upstream filter match on free-text geography is unreliable (trailing
spaces, alternate spellings), so an empty scoped answer often means the
filter, not the data, was wrong. Stages run strictly in order:

    SCOPED -> STATE_ONLY -> UNFILTERED -> EXHAUSTED

Each stage after SCOPED trades filter precision for availability and is
reported on the outcome so consumers can tell a broadened answer apart.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable

from loguru import logger

from ...config.schemas import FallbackConfig
from ...models import (
    FallbackOutcome,
    FallbackStage,
    FetchResult,
    FetchSuccess,
    PerformanceQuery,
)
from ...transformers.record_normalizer import count_entries, extract_entries, filter_entries_by_state


FetchFn = Callable[[PerformanceQuery, int], Awaitable[FetchResult]]
HasData = Callable[[FetchResult | None], bool]


def has_entries(result: FetchResult | None) -> bool:
    """True for a successful fetch whose payload holds at least one entry."""
    return isinstance(result, FetchSuccess) and count_entries(result.payload) > 0


def narrow_to_state(result: FetchSuccess, state: str) -> FetchSuccess | None:
    """Rebuild an unfiltered payload keeping only rows of `state` (case-insensitive)."""
    _, entries = extract_entries(result.payload)
    matched = filter_entries_by_state(entries, state)
    if not matched:
        return None
    payload = {"records": matched, "total": len(matched), "count": len(matched)}
    return FetchSuccess(payload=payload, body=json.dumps(payload), attempts=result.attempts)


async def resolve_with_fallback(
    query: PerformanceQuery,
    fetch: FetchFn,
    *,
    state_only_limit: int = 100,
    unfiltered_limit: int = 500,
    scoped_result: FetchResult | None = None,
    has_data: HasData | None = None,
) -> FallbackOutcome:
    """Widen `query` until some stage yields entries.

    Args:
        query: The caller's original query
        fetch: Capability that performs one upstream fetch for (query, limit)
        state_only_limit: Row limit for the state-only stage
        unfiltered_limit: Row limit for the unfiltered stage
        scoped_result: Result of the scoped fetch if the caller already ran it
        has_data: Whether a stage result counts as data; defaults to
            `has_entries`. The pipeline passes a check for usable records.

    Returns:
        FallbackOutcome with the payload of the stage that produced data, or
        the last successful payload (possibly empty) when every stage is empty
    """
    has_data = has_data or has_entries
    tried = [FallbackStage.SCOPED]
    result = scoped_result if scoped_result is not None else await fetch(query, query.limit)
    if has_data(result):
        return FallbackOutcome(result, FallbackStage.SCOPED, tuple(tried))

    last_payload = result
    last_success = result if isinstance(result, FetchSuccess) else None

    if query.state:
        tried.append(FallbackStage.STATE_ONLY)
        logger.warning(
            f"0 records for state='{query.state}', district='{query.district}'; "
            "retrying with the district filter dropped"
        )
        result = await fetch(query.widened(district=None), state_only_limit)
        if has_data(result):
            logger.warning(
                f"State-only query for '{query.state}' returned data; "
                f"district '{query.district}' likely does not match upstream spelling"
            )
            return FallbackOutcome(result, FallbackStage.STATE_ONLY, tuple(tried))
        last_payload = result
        if isinstance(result, FetchSuccess):
            last_success = result

    tried.append(FallbackStage.UNFILTERED)
    logger.warning("Scoped queries returned nothing; trying an unfiltered query")
    result = await fetch(PerformanceQuery(limit=unfiltered_limit), unfiltered_limit)
    if has_data(result):
        if query.state:
            narrowed = narrow_to_state(result, query.state)
            if narrowed is not None and has_data(narrowed):
                logger.warning(
                    f"Kept {count_entries(narrowed.payload)} unfiltered rows matching "
                    f"state '{query.state}'"
                )
                return FallbackOutcome(narrowed, FallbackStage.UNFILTERED, tuple(tried))
            logger.warning(
                f"No unfiltered rows match state '{query.state}'; returning all available data"
            )
        return FallbackOutcome(result, FallbackStage.UNFILTERED, tuple(tried))

    last_payload = result
    if isinstance(result, FetchSuccess):
        last_success = result

    logger.error("Upstream returned no data even without filters")
    final = last_success if last_success is not None else last_payload
    return FallbackOutcome(final, FallbackStage.EXHAUSTED, tuple(tried))


class FallbackResolver:
    """Binds a fetch capability and configured limits to `resolve_with_fallback`."""

    def __init__(
        self,
        fetch: FetchFn,
        config: FallbackConfig | None = None,
        *,
        has_data: HasData | None = None,
    ):
        self.fetch = fetch
        self.config = config or FallbackConfig()
        self.has_data = has_data or has_entries

    async def resolve(
        self, query: PerformanceQuery, scoped_result: FetchResult | None = None
    ) -> FallbackOutcome:
        return await resolve_with_fallback(
            query,
            self.fetch,
            state_only_limit=self.config.state_only_limit,
            unfiltered_limit=self.config.unfiltered_limit,
            scoped_result=scoped_result,
            has_data=self.has_data,
        )

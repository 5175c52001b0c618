"""data.gov.in resource API client.

Async client for the district-wise MGNREGA performance resource. Retries
transient failures with exponential backoff and reports the outcome as a
tagged FetchResult; it never raises past its caller. Admission control and
caching are the orchestrator's job, not this client's.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...config.schemas import UpstreamConfig
from ...exceptions import APIError, EmptyResponseError, MissingCredentialError, RateLimitError
from ...models import FailureKind, FetchFailure, FetchResult, FetchSuccess, PerformanceQuery


API_NAME = "data_gov"
REDACTED = "***"


class DataGovClient:
    """Async client for api.data.gov.in resources."""

    def __init__(
        self,
        config: UpstreamConfig | None = None,
        *,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            config: Upstream settings. If None, loads from get_config()
            api_key: Explicit key; otherwise config.api_key, then the env var
            http_client: Optional pre-configured HTTPX client (useful for tests)
        """
        if config is None:
            from ...config.loader import get_config

            config = get_config().upstream
        self.config = config

        self.base_url = config.base_url
        self.resource_id = config.resource_id
        self.max_retries = config.max_retries
        self.retry_backoff = config.retry_backoff_seconds
        self.default_limit = config.default_limit

        self.api_key = api_key or config.api_key or os.getenv(config.api_key_env_var)
        if not self.api_key:
            logger.warning(
                f"data.gov.in API key not found in {config.api_key_env_var}. "
                "Fetches will fail without it."
            )

        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

        logger.info(
            f"Initialized DataGovClient: base_url={self.base_url}, "
            f"max_retries={self.max_retries}, backoff={self.retry_backoff}s"
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> DataGovClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def build_params(self, filters: Mapping[str, str], limit: int | None = None) -> dict[str, str]:
        """Query parameters: key, format, limit, then the bracketed filters."""
        params = {
            "api-key": self.api_key or "",
            "format": "json",
            "limit": str(limit or self.default_limit),
        }
        for key, value in filters.items():
            if key in ("limit", "api-key", "format") or value is None:
                continue
            params[key] = str(value)
        return params

    def resource_url(self, resource_id: str | None = None) -> str:
        return f"{self.base_url}/{resource_id or self.resource_id}"

    def redacted_url(self, url: str, params: Mapping[str, str]) -> str:
        """Full request URL with the API key masked, safe to log."""
        safe = {k: (REDACTED if k == "api-key" else v) for k, v in params.items()}
        return str(httpx.URL(url, params=safe))

    async def fetch(
        self,
        resource_id: str | None = None,
        filters: Mapping[str, str] | None = None,
        limit: int | None = None,
    ) -> FetchResult:
        """Fetch one page of a resource.

        Returns:
            FetchSuccess with the parsed JSON object, or FetchFailure with kind
            MISSING_CREDENTIAL (no network call made), TRANSIENT_FETCH_FAILURE
            (retries exhausted) or EMPTY_RESPONSE (empty/unparseable body)
        """
        if not self.api_key:
            error = MissingCredentialError(
                "Missing data.gov.in API key",
                env_var=self.config.api_key_env_var,
                api_name=API_NAME,
                operation="fetch",
            )
            logger.error(error.message)
            return FetchFailure(FailureKind.MISSING_CREDENTIAL, error.message, error=error)

        url = self.resource_url(resource_id)
        params = self.build_params(filters or {}, limit)
        logger.info(f"DataGov GET: {self.redacted_url(url, params)}")

        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_exponential(multiplier=self.retry_backoff),
                retry=retry_if_exception_type(APIError),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    body = await self._get(url, params)
        except APIError as e:
            logger.error(f"Max retries exhausted after {attempts} attempts: {e.message}")
            return FetchFailure(
                FailureKind.TRANSIENT_FETCH_FAILURE, e.message, attempts=attempts, error=e
            )

        return self._parse_body(body, url, attempts)

    async def fetch_query(self, query: PerformanceQuery, limit: int | None = None) -> FetchResult:
        """Fetch using a query's filters; `limit` overrides the query's own."""
        return await self.fetch(filters=query.upstream_filters(), limit=limit or query.limit)

    async def _get(self, url: str, params: Mapping[str, str]) -> str:
        try:
            response = await self._client.get(
                url,
                params=params,
                headers={"Accept": "application/json", "User-Agent": self.config.user_agent},
            )
            response.raise_for_status()
            return response.text
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                raise RateLimitError(
                    "data.gov.in rate limit exceeded",
                    api_name=API_NAME,
                    http_status=status,
                    details={"response_text": e.response.text[:200]},
                    cause=e,
                ) from e
            raise APIError(
                f"HTTP {status}: {e.response.text[:200]}",
                api_name=API_NAME,
                http_status=status,
                operation="fetch",
                retryable=True,
                cause=e,
            ) from e
        except httpx.TimeoutException as e:
            raise APIError(
                f"Request timed out: {e}",
                api_name=API_NAME,
                http_status=408,
                operation="fetch",
                cause=e,
            ) from e
        except httpx.RequestError as e:
            raise APIError(
                f"Request error: {e}",
                api_name=API_NAME,
                operation="fetch",
                retryable=True,
                cause=e,
            ) from e

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Retrying API call (attempt {retry_state.attempt_number}, "
            f"next in {wait:.1f}s): {getattr(exc, 'message', exc)}"
        )

    @staticmethod
    def _parse_body(body: str, url: str, attempts: int) -> FetchResult:
        if not body or not body.strip():
            error = EmptyResponseError("Empty response from API", api_name=API_NAME, endpoint=url)
            logger.error(error.message)
            return FetchFailure(FailureKind.EMPTY_RESPONSE, error.message, attempts, error)

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            error = EmptyResponseError(
                f"Unparseable response from API: {e}", api_name=API_NAME, endpoint=url, cause=e
            )
            logger.error(f"{error.message}. Body preview: {body[:200]}")
            return FetchFailure(FailureKind.EMPTY_RESPONSE, error.message, attempts, error)

        if not isinstance(payload, dict):
            error = EmptyResponseError(
                f"Expected a JSON object, got {type(payload).__name__}",
                api_name=API_NAME,
                endpoint=url,
            )
            logger.error(error.message)
            return FetchFailure(FailureKind.EMPTY_RESPONSE, error.message, attempts, error)

        return FetchSuccess(payload=payload, body=body, attempts=attempts)

"""Exception hierarchy for the MGNREGA ingestion pipeline.

Components raise these internally; the client and the pipeline turn them
into tagged results (FetchFailure, IngestionResult.error) at their seams, so
callers of `IngestionPipeline.get_or_fetch` never need to catch them.

    IngestionError
    ├── ConfigurationError
    ├── ExtractionError
    │   └── APIError
    │       ├── RateLimitError
    │       ├── MissingCredentialError
    │       └── EmptyResponseError
    ├── TransformationError
    │   └── MalformedPayloadError
    └── LoadError

Usage:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise wrap_exception(exc, APIError, api_name="data_gov", http_status=503)
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, ClassVar


RETRYABLE_HTTP_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class ErrorCode(IntEnum):
    """Numeric codes for programmatic handling.

    1xxx configuration, 2xxx payload, 3xxx upstream API, 5xxx pipeline stage.
    """

    CONFIG_VALIDATION_FAILED = 1002

    MALFORMED_PAYLOAD = 2001

    API_REQUEST_FAILED = 3101
    API_RATE_LIMIT = 3102
    API_MISSING_CREDENTIAL = 3103
    API_EMPTY_RESPONSE = 3104

    EXTRACTION_FAILED = 5001
    TRANSFORMATION_FAILED = 5003
    LOADING_FAILED = 5004


class IngestionError(Exception):
    """Base class for pipeline errors.

    Subclasses set ``default_code`` and ``default_component``; both can still
    be overridden per instance.

    Attributes:
        message: Human-readable description
        component: Where it happened, e.g. "api.data_gov" or "loader.duckdb"
        operation: What was being done, e.g. "fetch"
        details: Extra context for logs
        retryable: Whether repeating the operation may succeed
        status_code: ErrorCode member, if any
        cause: Wrapped library exception, if any
    """

    default_code: ClassVar[ErrorCode | None] = None
    default_component: ClassVar[str | None] = None

    def __init__(
        self,
        message: str,
        component: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        status_code: ErrorCode | None = None,
        cause: Exception | None = None,
    ):
        self.message = message
        self._named_component = component or self.default_component
        self.component = self._named_component or self.__class__.__module__
        self.operation = operation
        self.details = dict(details or {})
        self.retryable = retryable
        self.status_code = status_code if status_code is not None else self.default_code
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        tags = [
            ("component", self._named_component),
            ("operation", self.operation),
            ("code", int(self.status_code) if self.status_code is not None else None),
        ]
        return " ".join([self.message, *(f"[{name}={value}]" for name, value in tags if value)])

    def to_dict(self) -> dict[str, Any]:
        """Serializable view for structured logs."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "component": self.component,
            "operation": self.operation,
            "details": self.details,
            "retryable": self.retryable,
            "status_code": int(self.status_code) if self.status_code is not None else None,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(IngestionError):
    """Configuration could not be loaded or validated. Never retryable."""

    default_code = ErrorCode.CONFIG_VALIDATION_FAILED
    default_component = "config"

    def __init__(self, message: str, config_key: str | None = None, **kwargs: Any):
        if config_key:
            kwargs["details"] = {**kwargs.get("details", {}), "config_key": config_key}
        kwargs["retryable"] = False
        super().__init__(message, **kwargs)


class ExtractionError(IngestionError):
    """Data could not be obtained from the upstream source."""

    default_code = ErrorCode.EXTRACTION_FAILED


class TransformationError(IngestionError):
    """A raw payload could not be turned into canonical records."""

    default_code = ErrorCode.TRANSFORMATION_FAILED


class LoadError(IngestionError):
    """The local record store failed to read or write.

    Example:
        raise LoadError("Failed to save records", details={"records_attempted": 12})
    """

    default_code = ErrorCode.LOADING_FAILED
    default_component = "loader.duckdb"


class APIError(ExtractionError):
    """An upstream HTTP call failed.

    Unless told otherwise, 408, 429 and 5xx statuses are marked retryable.
    """

    default_code = ErrorCode.API_REQUEST_FAILED

    def __init__(
        self,
        message: str,
        api_name: str | None = None,
        endpoint: str | None = None,
        http_status: int | None = None,
        **kwargs: Any,
    ):
        details = dict(kwargs.pop("details", None) or {})
        if endpoint:
            details["endpoint"] = endpoint
        if http_status:
            details["http_status"] = http_status
            kwargs.setdefault("retryable", http_status in RETRYABLE_HTTP_STATUSES)
        kwargs.setdefault("component", f"api.{api_name}" if api_name else "api")
        self.http_status = http_status
        super().__init__(message, details=details, **kwargs)


class RateLimitError(APIError):
    """Upstream answered HTTP 429. Always retryable."""

    default_code = ErrorCode.API_RATE_LIMIT

    def __init__(self, message: str, retry_after: int | None = None, **kwargs: Any):
        if retry_after:
            kwargs["details"] = {**kwargs.get("details", {}), "retry_after_seconds": retry_after}
        kwargs["retryable"] = True
        super().__init__(message, **kwargs)


class MissingCredentialError(APIError):
    """No API key is configured, so no request is attempted."""

    default_code = ErrorCode.API_MISSING_CREDENTIAL

    def __init__(self, message: str, env_var: str | None = None, **kwargs: Any):
        if env_var:
            kwargs["details"] = {**kwargs.get("details", {}), "env_var": env_var}
        kwargs["retryable"] = False
        super().__init__(message, **kwargs)


class EmptyResponseError(APIError):
    """Upstream answered with an empty, non-JSON or non-object body."""

    default_code = ErrorCode.API_EMPTY_RESPONSE

    def __init__(self, message: str, **kwargs: Any):
        kwargs["retryable"] = False
        super().__init__(message, **kwargs)


class MalformedPayloadError(TransformationError):
    """The body is a JSON object but none of the known keys holds a records array."""

    default_code = ErrorCode.MALFORMED_PAYLOAD
    default_component = "transformer.record_normalizer"

    def __init__(self, message: str, available_keys: list[str] | None = None, **kwargs: Any):
        if available_keys is not None:
            kwargs["details"] = {**kwargs.get("details", {}), "available_keys": available_keys}
        super().__init__(message, **kwargs)


def wrap_exception(
    original: Exception,
    error_class: type[IngestionError],
    message: str | None = None,
    **kwargs: Any,
) -> IngestionError:
    """Wrap a library exception in the pipeline hierarchy, keeping it as ``cause``."""
    return error_class(message or str(original), cause=original, **kwargs)


def is_retryable(exc: Exception) -> bool:
    return isinstance(exc, IngestionError) and exc.retryable


def get_error_code(exc: Exception) -> int | None:
    """The numeric ErrorCode of a pipeline error, else None."""
    if isinstance(exc, IngestionError) and exc.status_code is not None:
        return int(exc.status_code)
    return None

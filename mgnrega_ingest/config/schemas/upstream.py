"""Schemas for the data.gov.in client and the admission/caching layers around it."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class UpstreamConfig(BaseModel):
    """Configuration for the data.gov.in resource API."""

    base_url: str = Field(
        default="https://api.data.gov.in/resource", description="Resource API base URL"
    )
    resource_id: str = Field(
        default="ee03643a-ee4c-48c2-ac30-9f2ff26ab722",
        description="District-wise MGNREGA performance resource",
    )
    api_key_env_var: str = Field(
        default="DATAGOV_API_KEY",  # pragma: allowlist secret
        description="Environment variable holding the API key",
    )
    api_key: str | None = Field(
        default=None, description="Inline API key (takes precedence over the env var)"
    )
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_backoff_seconds: float = Field(
        default=2.0, ge=0.0, description="Base delay of the exponential backoff"
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    default_limit: int = Field(default=12, ge=1, description="Row limit when none is given")
    user_agent: str = Field(default="mgnrega-ingest/0.1.0")

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class FallbackConfig(BaseModel):
    """Row limits used when a scoped query has to be widened."""

    state_only_limit: int = Field(default=100, ge=1)
    unfiltered_limit: int = Field(default=500, ge=1)


class RateLimitConfig(BaseModel):
    """Fixed-window admission control for upstream calls."""

    window_seconds: float = Field(default=60.0, gt=0, description="Window length W")
    capacity: int = Field(default=10, ge=1, description="Admissions per window C")
    key: str = Field(default="data-gov-api", description="Limiter key used for upstream calls")


class CacheConfig(BaseModel):
    """In-process response cache."""

    enabled: bool = Field(default=True)
    ttl_seconds: float = Field(default=900.0, gt=0, description="Entry time-to-live")

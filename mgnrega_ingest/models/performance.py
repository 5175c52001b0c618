"""Canonical MGNREGA performance records and the query that selects them."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


CACHE_KEY_SEPARATOR = "|"
EMPTY_PLACEHOLDER = ""


def _key_part(value: str | None) -> str:
    if value is None:
        return EMPTY_PLACEHOLDER
    # Backslash-escape literal separators and backslashes.
    return value.replace("\\", "\\\\").replace(CACHE_KEY_SEPARATOR, "\\" + CACHE_KEY_SEPARATOR)


class CanonicalRecord(BaseModel):
    """One state/district/period performance observation.

    Metric fields are optional: ``None`` means "not reported" and is never
    coerced to zero. Instances are immutable once normalized.
    """

    fin_year: str | None = Field(None, description="Financial year, e.g. '2024-2025'")
    month: str | None = Field(None, description="Month name as reported upstream")
    state_name: str = Field(..., description="State name")
    district_name: str = Field(..., description="District name")

    households_worked: int | None = Field(None, description="Households that worked")
    persondays_generated: int | None = Field(None, description="Persondays generated")
    women_persondays_percent: float | None = Field(
        None, description="Share of persondays worked by women, 0-100"
    )
    ongoing_works: int | None = Field(None, description="Number of ongoing works")
    completed_works: int | None = Field(None, description="Number of completed works")
    avg_wage_rate: float | None = Field(None, description="Average wage per day per person")
    total_wages: float | None = Field(None, description="Total wages paid")

    model_config = ConfigDict(frozen=True)

    @field_validator("state_name", "district_name")
    @classmethod
    def _require_geography(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("geographic key must be non-empty")
        return value

    @field_validator("fin_year", "month")
    @classmethod
    def _blank_period_is_absent(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def has_metrics(self) -> bool:
        """True if at least one metric was reported."""
        return any(getattr(self, name) is not None for name in METRIC_FIELDS)


METRIC_FIELDS: tuple[str, ...] = (
    "households_worked",
    "persondays_generated",
    "women_persondays_percent",
    "ongoing_works",
    "completed_works",
    "avg_wage_rate",
    "total_wages",
)


class StoredPerformanceRecord(CanonicalRecord):
    """A canonical record as read back from the local store."""

    id: int
    created_at: datetime


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class PerformanceQuery(BaseModel):
    """Caller-supplied filters for one `get_or_fetch` call.

    Blank strings and ``None`` are equivalent: both mean "no filter".
    """

    state: str | None = None
    district: str | None = None
    month: str | None = None
    fin_year: str | None = None
    limit: int = Field(default=12, ge=1)

    model_config = ConfigDict(frozen=True)

    @field_validator("state", "district", "month", "fin_year")
    @classmethod
    def _normalize_blank(cls, value: str | None) -> str | None:
        return _clean(value)

    @property
    def is_fully_scoped(self) -> bool:
        """Both state and district were given."""
        return self.state is not None and self.district is not None

    def cache_key(self) -> str:
        """Query fingerprint: every filter plus the limit, in a fixed order."""
        parts = [
            _key_part(self.state),
            _key_part(self.district),
            _key_part(self.month),
            _key_part(self.fin_year),
            str(self.limit),
        ]
        return CACHE_KEY_SEPARATOR.join(parts)

    def upstream_filters(self) -> dict[str, str]:
        """Bracketed `filters[...]` query parameters for the upstream API."""
        filters: dict[str, str] = {}
        if self.state:
            filters["filters[state_name]"] = self.state
        if self.district:
            filters["filters[district_name]"] = self.district
        if self.month:
            filters["filters[month]"] = self.month
        if self.fin_year:
            filters["filters[fin_year]"] = self.fin_year
        return filters

    def widened(self, **changes: Any) -> PerformanceQuery:
        return PerformanceQuery(**{**self.model_dump(), **changes})

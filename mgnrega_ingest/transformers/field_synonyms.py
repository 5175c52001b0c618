"""Field-name vocabulary of the data.gov.in MGNREGA resource.

Each canonical field maps to an ordered list of upstream spellings; the first
spelling that is present and parses wins. Upstream names come first and the
canonical snake_case name last, so payloads rebuilt from stored records
normalize the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FieldKind(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"


@dataclass(frozen=True)
class FieldSpec:
    """Resolution rule for one canonical field.

    Attributes:
        name: Canonical field name on CanonicalRecord
        kind: How the raw value is parsed
        synonyms: Upstream field names in priority order
        contains: Last-resort case-insensitive substring match on field names
    """

    name: str
    kind: FieldKind
    synonyms: tuple[str, ...]
    contains: str | None = None


# Candidate top-level keys holding the records array, in priority order.
RECORDS_KEYS: tuple[str, ...] = ("records", "data", "result")

PERIOD_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("fin_year", FieldKind.TEXT, ("fin_year", "financial_year", "Fin_Year")),
    FieldSpec("month", FieldKind.TEXT, ("month", "Month")),
)

GEOGRAPHY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("state_name", FieldKind.TEXT, ("state_name", "State_Name", "state", "State")),
    FieldSpec(
        "district_name",
        FieldKind.TEXT,
        ("district_name", "District_Name", "district", "District"),
    ),
)

METRIC_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "households_worked",
        FieldKind.INTEGER,
        (
            "Total_Households_Worked",
            "No_of_Households_Worked",
            "Households_Worked",
            "Number_of_Households_Worked",
            "total_households_worked",
            "households_worked",
        ),
    ),
    FieldSpec(
        "persondays_generated",
        FieldKind.INTEGER,
        (
            "Persondays_of_Central_Liability_so_far",
            "Total_Persondays_Generated",
            "Persondays_Generated",
            "Total_Person_Days",
            "persondays",
            "persondays_generated",
        ),
    ),
    FieldSpec(
        "women_persondays_percent",
        FieldKind.DECIMAL,
        (
            "Women_Persondays_Percent",
            "percent_of_Women_Persondays",
            "women_persondays_percent",
        ),
    ),
    FieldSpec(
        "ongoing_works",
        FieldKind.INTEGER,
        (
            "Number_of_Ongoing_Works",
            "No_of_Ongoing_Works",
            "Ongoing_Works",
            "OngoingWorks",
            "Number_of_works_ongoing",
            "Works_Ongoing",
            "no_of_ongoing_works",
            "ongoing_works",
        ),
        contains="ongoing",
    ),
    FieldSpec(
        "completed_works",
        FieldKind.INTEGER,
        (
            "Number_of_Completed_Works",
            "No_of_Completed_Works",
            "Completed_Works",
            "CompletedWorks",
            "Number_of_works_completed",
            "Works_Completed",
            "no_of_completed_works",
            "completed_works",
        ),
        contains="completed",
    ),
    FieldSpec(
        "avg_wage_rate",
        FieldKind.DECIMAL,
        (
            "Average_Wage_rate_per_day_per_person",
            "Average_Wage_Rate",
            "average_wage_rate",
            "avg_wage",
            "avg_wage_rate",
        ),
    ),
    FieldSpec(
        "total_wages",
        FieldKind.DECIMAL,
        (
            "Wages",
            "Total_Wages",
            "Material_and_skilled_Wages",
            "Material and skilled Wages",
            "total_wages",
        ),
    ),
)

# Inputs to derived metrics; never stored themselves.
WOMEN_PERSONDAYS = FieldSpec(
    "women_persondays", FieldKind.INTEGER, ("Women_Persondays", "women_persondays")
)
SC_PERSONDAYS = FieldSpec("sc_persondays", FieldKind.INTEGER, ("SC_persondays", "SC_Persondays"))
ST_PERSONDAYS = FieldSpec("st_persondays", FieldKind.INTEGER, ("ST_persondays", "ST_Persondays"))

ALL_FIELDS: tuple[FieldSpec, ...] = PERIOD_FIELDS + GEOGRAPHY_FIELDS + METRIC_FIELDS

FIELDS_BY_NAME: dict[str, FieldSpec] = {spec.name: spec for spec in ALL_FIELDS}

"""Normalize raw data.gov.in entries into canonical performance records.

The upstream schema is not contractual: the same metric appears under several
spellings across API versions and numbers often arrive as strings with
thousands separators. Resolution is table-driven (see ``field_synonyms``);
a field that is missing or fails to parse is simply absent.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger
from pydantic import ValidationError

from ..config.schemas import NormalizerConfig
from ..models import CanonicalRecord, NormalizedBatch
from .field_synonyms import (
    ALL_FIELDS,
    FIELDS_BY_NAME,
    RECORDS_KEYS,
    SC_PERSONDAYS,
    ST_PERSONDAYS,
    WOMEN_PERSONDAYS,
    FieldKind,
    FieldSpec,
)


def _numeric_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = value.replace(",", "").strip()
        return text or None
    return None


def parse_int(value: Any) -> int | None:
    """Parse an integer, tolerating thousands separators; None on failure."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = _numeric_text(value)
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def parse_float(value: Any) -> float | None:
    """Parse a finite float, tolerating thousands separators; None on failure."""
    text = _numeric_text(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


_PARSERS = {
    FieldKind.TEXT: parse_text,
    FieldKind.INTEGER: parse_int,
    FieldKind.DECIMAL: parse_float,
}


def resolve_field(entry: Mapping[str, Any], spec: FieldSpec) -> Any:
    """Return the first synonym of `spec` that is present and parses."""
    parser = _PARSERS[spec.kind]
    for name in spec.synonyms:
        if name in entry:
            parsed = parser(entry[name])
            if parsed is not None:
                return parsed

    if spec.contains:
        needle = spec.contains.lower()
        for name, raw in entry.items():
            if isinstance(name, str) and needle in name.lower():
                parsed = parser(raw)
                if parsed is not None:
                    return parsed
    return None


def resolve_text(entry: Mapping[str, Any], field_name: str) -> str | None:
    """Resolve a canonical text field (e.g. ``state_name``) from a raw entry."""
    return resolve_field(entry, FIELDS_BY_NAME[field_name])


def extract_entries(payload: Any) -> tuple[str | None, list[Any]]:
    """Locate the records array in a raw payload.

    Candidate keys are tried in ``RECORDS_KEYS`` order and the first one that
    holds a list wins, even if the list is empty.

    Returns:
        (key the array was found under, entries); key is None if none matched
    """
    if not isinstance(payload, Mapping):
        return None, []
    for key in RECORDS_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return key, value
    return None, []


def count_entries(payload: Any) -> int:
    return len(extract_entries(payload)[1])


class RecordNormalizer:
    """Turns raw entries into CanonicalRecords, rejecting those without geography."""

    def __init__(self, config: NormalizerConfig | None = None):
        self.config = config or NormalizerConfig()

    def normalize(self, entry: Any) -> CanonicalRecord | None:
        """Normalize one raw entry.

        Returns:
            CanonicalRecord, or None when the entry is rejected (not a mapping,
            or state/district absent after synonym resolution)
        """
        if not isinstance(entry, Mapping):
            return None

        values = {spec.name: resolve_field(entry, spec) for spec in ALL_FIELDS}
        if not values["state_name"] or not values["district_name"]:
            return None

        if values["persondays_generated"] is None and self.config.derive_persondays_from_components:
            values["persondays_generated"] = self._persondays_from_components(entry)

        if values["women_persondays_percent"] is None:
            values["women_persondays_percent"] = self._women_percent(
                entry, values["persondays_generated"]
            )

        return CanonicalRecord(**values)

    def normalize_batch(self, payload: Any) -> NormalizedBatch:
        """Normalize every entry of a raw payload.

        A rejected entry never aborts its siblings. A payload with no records
        array at all comes back with ``records_key=None`` (malformed).
        """
        records_key, entries = extract_entries(payload)
        if records_key is None:
            available = sorted(payload) if isinstance(payload, Mapping) else []
            logger.error(f"No records array found in payload. Available keys: {available}")
            return NormalizedBatch(records=(), rejected_count=0, records_key=None)

        if not entries:
            logger.info(f"Records array '{records_key}' is empty; upstream returned 0 rows")
            return NormalizedBatch(records=(), rejected_count=0, records_key=records_key)

        if isinstance(entries[0], Mapping):
            logger.debug(f"Sample record keys from API: {sorted(entries[0])}")

        records: list[CanonicalRecord] = []
        rejected = 0
        for index, entry in enumerate(entries):
            try:
                record = self.normalize(entry)
            except (TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Failed to normalize entry {index}: {e}")
                record = None

            if record is None:
                rejected += 1
                logger.debug(f"Rejected entry {index}: missing state or district")
                continue
            records.append(record)

        logger.info(
            f"Normalized {len(records)} of {len(entries)} entries from '{records_key}' "
            f"({rejected} rejected)"
        )
        return NormalizedBatch(records=tuple(records), rejected_count=rejected, records_key=records_key)

    @staticmethod
    def _persondays_from_components(entry: Mapping[str, Any]) -> int | None:
        components = [
            resolve_field(entry, spec) for spec in (WOMEN_PERSONDAYS, SC_PERSONDAYS, ST_PERSONDAYS)
        ]
        present = [value for value in components if value is not None]
        if not present:
            return None
        total = sum(present)
        return total if total > 0 else None

    @staticmethod
    def _women_percent(entry: Mapping[str, Any], total_persondays: int | None) -> float | None:
        women = resolve_field(entry, WOMEN_PERSONDAYS)
        if women is None or not total_persondays:
            return None
        return 100.0 * women / total_persondays


def filter_entries_by_state(entries: Sequence[Any], state: str) -> list[Any]:
    """Entries whose resolved state name equals `state`, ignoring case."""
    wanted = state.strip().casefold()
    matched = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        name = resolve_text(entry, "state_name")
        if name is not None and name.casefold() == wanted:
            matched.append(entry)
    return matched

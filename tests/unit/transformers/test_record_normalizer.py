"""Tests for raw entry normalization."""

import pytest

from mgnrega_ingest.config.schemas import NormalizerConfig
from mgnrega_ingest.transformers.field_synonyms import ALL_FIELDS, FIELDS_BY_NAME
from mgnrega_ingest.transformers.record_normalizer import (
    RecordNormalizer,
    extract_entries,
    filter_entries_by_state,
    parse_float,
    parse_int,
    resolve_field,
)


pytestmark = pytest.mark.fast


@pytest.fixture
def normalizer():
    return RecordNormalizer()


def _entry(**fields):
    return {"state_name": "UTTAR PRADESH", "district_name": "AGRA", **fields}


class TestParsers:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1,23,456", 123456),
            (" 42 ", 42),
            (7, 7),
            (7.0, 7),
            (7.5, None),
            ("", None),
            ("n/a", None),
            (None, None),
            (True, None),
        ],
    )
    def test_parse_int(self, raw, expected):
        assert parse_int(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [("1,234.5", 1234.5), ("237", 237.0), (12, 12.0), ("NaN", None), ("inf", None), ("", None)],
    )
    def test_parse_float(self, raw, expected):
        assert parse_float(raw) == expected


class TestFieldResolution:
    def test_synonym_priorities_are_unique(self):
        for spec in ALL_FIELDS:
            assert len(spec.synonyms) == len(set(spec.synonyms)), spec.name

    def test_second_synonym_equals_first(self, normalizer):
        spec = FIELDS_BY_NAME["persondays_generated"]
        first, second = spec.synonyms[0], spec.synonyms[1]

        via_first = normalizer.normalize(_entry(**{first: "1,800,000"}))
        via_second = normalizer.normalize(_entry(**{second: "1,800,000"}))

        assert via_first.persondays_generated == via_second.persondays_generated == 1800000

    def test_first_synonym_wins(self):
        spec = FIELDS_BY_NAME["households_worked"]
        entry = {spec.synonyms[0]: "10", spec.synonyms[1]: "20"}

        assert resolve_field(entry, spec) == 10

    def test_unparseable_synonym_falls_through(self):
        spec = FIELDS_BY_NAME["households_worked"]
        entry = {spec.synonyms[0]: "NA", spec.synonyms[1]: "20"}

        assert resolve_field(entry, spec) == 20

    def test_substring_fallback_for_works(self, normalizer):
        record = normalizer.normalize(
            _entry(Total_No_of_Works_Ongoing_FY="15", completed_in_period="4")
        )

        assert record.ongoing_works == 15
        assert record.completed_works == 4


class TestNormalize:
    def test_full_entry(self, normalizer, up_entries):
        record = normalizer.normalize(up_entries[0])

        assert record.fin_year == "2024-2025"
        assert record.month == "Dec"
        assert record.state_name == "UTTAR PRADESH"
        assert record.households_worked == 123456
        assert record.persondays_generated == 2500000
        assert record.ongoing_works == 3210
        assert record.completed_works == 1045
        assert record.avg_wage_rate == 237.5
        assert record.total_wages == 59375.25

    def test_idempotent(self, normalizer, up_entries):
        assert normalizer.normalize(up_entries[0]) == normalizer.normalize(up_entries[0])

    def test_missing_metric_is_absent_not_zero(self, normalizer):
        record = normalizer.normalize(_entry())

        assert record.households_worked is None
        assert record.total_wages is None
        assert record.has_metrics() is False

    @pytest.mark.parametrize(
        "entry",
        [
            {"state_name": "UTTAR PRADESH"},
            {"district_name": "AGRA"},
            {"state_name": "  ", "district_name": "AGRA"},
            "not a mapping",
            None,
        ],
    )
    def test_rejected_without_geography(self, normalizer, entry):
        assert normalizer.normalize(entry) is None

    def test_geography_synonyms_and_trim(self, normalizer):
        record = normalizer.normalize({"State": " Bihar ", "District_Name": "Patna "})

        assert record.state_name == "Bihar"
        assert record.district_name == "Patna"


class TestDerivedMetrics:
    def test_women_percent_from_counts(self, normalizer):
        record = normalizer.normalize(
            _entry(Total_Persondays_Generated="2,000", Women_Persondays="500")
        )
        assert record.women_persondays_percent == 25.0

    def test_reported_percent_not_recomputed(self, normalizer):
        record = normalizer.normalize(
            _entry(
                Total_Persondays_Generated="2000",
                Women_Persondays="500",
                Women_Persondays_Percent="41.2",
            )
        )
        assert record.women_persondays_percent == 41.2

    def test_zero_denominator_leaves_percent_absent(self, normalizer):
        record = normalizer.normalize(_entry(Total_Persondays_Generated="0", Women_Persondays="0"))

        assert record.persondays_generated == 0
        assert record.women_persondays_percent is None

    def test_persondays_from_components(self, normalizer):
        record = normalizer.normalize(
            _entry(Women_Persondays="100", SC_persondays="50", ST_persondays="25")
        )

        assert record.persondays_generated == 175
        assert record.women_persondays_percent == pytest.approx(100 * 100 / 175)

    def test_component_derivation_can_be_disabled(self):
        normalizer = RecordNormalizer(NormalizerConfig(derive_persondays_from_components=False))

        record = normalizer.normalize(_entry(Women_Persondays="100", SC_persondays="50"))

        assert record.persondays_generated is None
        assert record.women_persondays_percent is None

    def test_zero_components_do_not_derive(self, normalizer):
        record = normalizer.normalize(_entry(SC_persondays="0", ST_persondays="0"))
        assert record.persondays_generated is None


class TestNormalizeBatch:
    def test_rejection_isolation(self, normalizer, up_entries):
        entries = [*up_entries, {"state_name": "UTTAR PRADESH", "Total_Households_Worked": "5"}]

        batch = normalizer.normalize_batch({"records": entries})

        assert len(batch) == 2
        assert batch.rejected_count == 1
        assert batch.records_key == "records"

    def test_alternate_records_key(self, normalizer, up_entries):
        batch = normalizer.normalize_batch({"data": up_entries})

        assert batch.records_key == "data"
        assert len(batch) == 2

    def test_empty_array_is_not_malformed(self, normalizer):
        batch = normalizer.normalize_batch({"records": [], "total": 0})

        assert batch.malformed is False
        assert len(batch) == 0

    def test_missing_array_is_malformed(self, normalizer):
        batch = normalizer.normalize_batch({"message": "Invalid API key", "status": "error"})

        assert batch.malformed is True
        assert batch.rejected_count == 0

    def test_non_mapping_payload_is_malformed(self, normalizer):
        assert normalizer.normalize_batch(["records"]).malformed is True


class TestHelpers:
    def test_extract_entries_key_priority(self):
        assert extract_entries({"data": [1], "records": [2]}) == ("records", [2])

    def test_extract_entries_skips_non_list(self):
        assert extract_entries({"records": "x", "result": [3]}) == ("result", [3])

    def test_filter_entries_by_state(self, up_entries):
        others = [{"state_name": "BIHAR", "district_name": "PATNA"}, "junk"]

        matched = filter_entries_by_state([*up_entries, *others], " uttar pradesh ")

        assert matched == up_entries

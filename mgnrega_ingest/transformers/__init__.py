"""Raw payload to canonical record transformations."""

from .record_normalizer import RecordNormalizer, extract_entries


__all__ = ["RecordNormalizer", "extract_entries"]

"""Upstream data extractors."""

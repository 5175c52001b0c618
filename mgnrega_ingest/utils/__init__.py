"""Shared utilities: logging, admission control, caching, storage access."""

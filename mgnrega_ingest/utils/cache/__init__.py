"""In-process caches."""

from .response_cache import CacheEntry, ResponseCache


__all__ = ["CacheEntry", "ResponseCache"]

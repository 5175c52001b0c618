"""Persistence for normalized records."""

from .performance_store import PerformanceStore


__all__ = ["PerformanceStore"]

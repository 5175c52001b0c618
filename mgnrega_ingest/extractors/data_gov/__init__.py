"""Client and fallback logic for the data.gov.in resource API."""

from .client import DataGovClient
from .fallback import FallbackResolver, resolve_with_fallback


__all__ = ["DataGovClient", "FallbackResolver", "resolve_with_fallback"]

"""MGNREGA district performance ingestion pipeline.

Fetches records from the data.gov.in resource API behind a rate limiter and
response cache, widens empty scoped queries, normalizes drifting field names
into canonical records and keeps them in a local DuckDB store.
"""

__version__ = "0.1.0"

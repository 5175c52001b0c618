"""DuckDB-backed store of canonical performance records.

Rows are insert-only: a re-ingested observation becomes a new row rather
than an edit of the old one. Lookups return the most recent period first
(financial year descending, then month in financial-year order, April
first and March last), with newer inserts ahead of older ones.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import duckdb
from loguru import logger

from ..exceptions import LoadError
from ..models import METRIC_FIELDS, CanonicalRecord, StoredPerformanceRecord
from ..utils.duckdb_client import DuckDBClient


COLUMNS: tuple[str, ...] = ("fin_year", "month", "state_name", "district_name") + METRIC_FIELDS

_MONTH_RANK = """
    CASE lower(substr(trim(coalesce(month, '')), 1, 3))
        WHEN 'apr' THEN 1 WHEN 'may' THEN 2 WHEN 'jun' THEN 3
        WHEN 'jul' THEN 4 WHEN 'aug' THEN 5 WHEN 'sep' THEN 6
        WHEN 'oct' THEN 7 WHEN 'nov' THEN 8 WHEN 'dec' THEN 9
        WHEN 'jan' THEN 10 WHEN 'feb' THEN 11 WHEN 'mar' THEN 12
        ELSE 0
    END
"""

_ORDER_BY = f"ORDER BY fin_year DESC NULLS LAST, {_MONTH_RANK} DESC, id DESC"


class PerformanceStore:
    """Batch insert and period-ordered lookup of canonical records."""

    def __init__(self, client: DuckDBClient, table_name: str = "performance_records"):
        self.client = client
        self.table_name = table_name
        self._sequence = f"{table_name}_id_seq"
        self.ensure_schema()

    def ensure_schema(self) -> None:
        table = self.table_name
        try:
            with self.client.connection() as conn:
                conn.execute(f"CREATE SEQUENCE IF NOT EXISTS {self._sequence}")
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id BIGINT PRIMARY KEY DEFAULT nextval('{self._sequence}'),
                        fin_year VARCHAR,
                        month VARCHAR,
                        state_name VARCHAR NOT NULL,
                        district_name VARCHAR NOT NULL,
                        households_worked BIGINT,
                        persondays_generated BIGINT,
                        women_persondays_percent DOUBLE,
                        ongoing_works BIGINT,
                        completed_works BIGINT,
                        avg_wage_rate DOUBLE,
                        total_wages DOUBLE,
                        created_at TIMESTAMP DEFAULT current_timestamp
                    )
                    """
                )
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_state_district "
                    f"ON {table} (state_name, district_name)"
                )
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_year_month ON {table} (fin_year, month)"
                )
        except duckdb.Error as e:
            raise LoadError(
                f"Failed to create table {table}: {e}", operation="ensure_schema", cause=e
            ) from e

    def save_batch(self, records: Sequence[CanonicalRecord]) -> int:
        """Insert all records in one transaction; either all land or none do.

        Returns:
            Number of rows inserted

        Raises:
            LoadError: If the insert fails (the transaction is rolled back)
        """
        if not records:
            return 0

        placeholders = ", ".join("?" for _ in COLUMNS)
        statement = (
            f"INSERT INTO {self.table_name} ({', '.join(COLUMNS)}) VALUES ({placeholders})"
        )
        rows = [[getattr(record, column) for column in COLUMNS] for record in records]

        try:
            with self.client.transaction() as conn:
                conn.executemany(statement, rows)
        except duckdb.Error as e:
            raise LoadError(
                f"Failed to save {len(rows)} performance records: {e}",
                operation="save_batch",
                details={"records_attempted": len(rows)},
                retryable=True,
                cause=e,
            ) from e

        logger.info(f"Saved {len(rows)} performance records to {self.table_name}")
        return len(rows)

    def records_for_district(
        self, state: str, district: str, limit: int | None = None
    ) -> list[StoredPerformanceRecord]:
        return self._select(
            "lower(trim(state_name)) = lower(trim(?)) AND lower(trim(district_name)) = lower(trim(?))",
            [state, district],
            limit,
        )

    def records_for_state(self, state: str, limit: int | None = None) -> list[StoredPerformanceRecord]:
        return self._select("lower(trim(state_name)) = lower(trim(?))", [state], limit)

    def records_for_period(
        self, state: str, district: str, fin_year: str
    ) -> list[StoredPerformanceRecord]:
        return self._select(
            "lower(trim(state_name)) = lower(trim(?)) "
            "AND lower(trim(district_name)) = lower(trim(?)) AND fin_year = ?",
            [state, district, fin_year],
            None,
        )

    def list_states(self) -> list[str]:
        rows = self._query(
            f"SELECT DISTINCT state_name FROM {self.table_name} ORDER BY state_name", []
        )
        return [row["state_name"] for row in rows]

    def list_districts(self, state: str) -> list[str]:
        rows = self._query(
            f"SELECT DISTINCT district_name FROM {self.table_name} "
            "WHERE lower(trim(state_name)) = lower(trim(?)) ORDER BY district_name",
            [state],
        )
        return [row["district_name"] for row in rows]

    def count(self) -> int:
        rows = self._query(f"SELECT COUNT(*) AS n FROM {self.table_name}", [])
        return int(rows[0]["n"]) if rows else 0

    def delete_empty_records(self) -> int:
        """Delete rows where every metric is absent. Returns rows deleted."""
        condition = " AND ".join(f"{name} IS NULL" for name in METRIC_FIELDS)
        try:
            with self.client.transaction() as conn:
                doomed = conn.execute(
                    f"SELECT COUNT(*) FROM {self.table_name} WHERE {condition}"
                ).fetchone()[0]
                conn.execute(f"DELETE FROM {self.table_name} WHERE {condition}")
        except duckdb.Error as e:
            raise LoadError(
                f"Failed to delete empty records: {e}", operation="delete_empty_records", cause=e
            ) from e
        if doomed:
            logger.info(f"Deleted {doomed} records with no reported metrics")
        return int(doomed)

    def _select(
        self, where: str, parameters: list[Any], limit: int | None
    ) -> list[StoredPerformanceRecord]:
        query = f"SELECT * FROM {self.table_name} WHERE {where} {_ORDER_BY}"
        if limit is not None:
            query += " LIMIT ?"
            parameters = [*parameters, limit]
        return [StoredPerformanceRecord(**row) for row in self._query(query, parameters)]

    def _query(self, query: str, parameters: list[Any]) -> list[dict[str, Any]]:
        try:
            return self.client.execute_query(query, parameters)
        except duckdb.Error as e:
            raise LoadError(f"Store query failed: {e}", operation="query", cause=e) from e

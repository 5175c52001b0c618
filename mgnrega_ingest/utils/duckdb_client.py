"""DuckDB client utilities for the local record store."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger


class DuckDBClient:
    """Client for DuckDB database operations.

    One connection is opened lazily and kept for the client's lifetime; every
    operation runs on its own cursor so the client can be shared by threads.
    """

    def __init__(self, database_path: str | None = None, read_only: bool = False):
        """`database_path` of None or ":memory:" keeps everything in process memory."""
        self.database_path = database_path or ":memory:"
        self.read_only = read_only
        self._connection: duckdb.DuckDBPyConnection | None = None
        self._connect_lock = threading.Lock()

    def _root_connection(self) -> duckdb.DuckDBPyConnection:
        with self._connect_lock:
            if self._connection is None:
                if self.database_path != ":memory:":
                    Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.database_path, read_only=self.read_only)
                logger.debug(f"Opened DuckDB database at {self.database_path}")
            return self._connection

    @contextmanager
    def connection(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Context manager yielding a cursor on the shared connection."""
        cursor = self._root_connection().cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run the block in one transaction; roll back on any exception."""
        with self.connection() as conn:
            conn.execute("BEGIN TRANSACTION")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    def execute(self, query: str, parameters: Sequence[Any] | None = None) -> None:
        with self.connection() as conn:
            conn.execute(query, parameters or [])

    def execute_query(
        self, query: str, parameters: Sequence[Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute a query and return results as list of dictionaries."""
        with self.connection() as conn:
            result = conn.execute(query, parameters or [])
            columns = [desc[0] for desc in result.description]
            rows = result.fetchall()
            return [dict(zip(columns, row, strict=False)) for row in rows]

    def close(self) -> None:
        """Close the shared connection if it exists."""
        with self._connect_lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

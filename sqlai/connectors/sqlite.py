"""
SQLite Connector

Async-compatible SQLite connector using the standard library driver.

The driver is synchronous, so query and schema operations are executed in
worker threads via asyncio.to_thread. Each call opens its own connection,
which keeps worker threads from sharing a handle. Query deadlines are
enforced inside SQLite with a progress handler, so a timed-out statement is
interrupted rather than left running in its thread.

The readonly flag governs the query path only. DDL issued through
``execute`` (dropping uploaded tables) always opens a writable handle.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from sqlai.connectors.base import (
    BaseConnector,
    ConnectionError,
    DatabaseType,
    QueryError,
    QueryTimeoutError,
    Row,
    SchemaError,
)
from sqlai.schema.models import ColumnInfo, ForeignKeyInfo, Schema, TableInfo

logger = logging.getLogger(__name__)

# SQLite virtual machine instructions between deadline checks
_PROGRESS_INTERVAL = 1000


class SQLiteConnector(BaseConnector):
    """SQLite database connector for file-based databases."""

    db_type = DatabaseType.SQLITE
    explain_prefix = "EXPLAIN QUERY PLAN"

    def __init__(
        self,
        path: str | Path,
        readonly: bool = True,
        timeout: int = 30,
        **kwargs,
    ) -> None:
        self.path = Path(path)
        self.readonly = readonly
        super().__init__(database=self.path.stem, pool_size=1, timeout=timeout, **kwargs)

    async def connect(self) -> None:
        """Verify the database file opens and answers."""
        if self._connected:
            return
        if not self.path.exists():
            raise ConnectionError(f"SQLite database not found: {self.path}")
        try:
            await asyncio.to_thread(self._test_connection_sync)
            self._connected = True
            logger.info(f"SQLite connected: {self.path} (readonly={self.readonly})")
        except sqlite3.Error as exc:
            logger.error(f"SQLite connection failed: {exc}")
            raise ConnectionError(f"Failed to open SQLite database: {exc}") from exc

    async def fetch_all(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: float | None = None,
    ) -> list[Row]:
        """Execute SQL query and return rows."""
        self._ensure_connected()
        query_timeout = timeout or self.timeout
        start_time = time.perf_counter()
        try:
            rows = await asyncio.to_thread(self._fetch_all_sync, query, params, query_timeout)
        except sqlite3.OperationalError as exc:
            if "interrupted" in str(exc).lower():
                logger.error(f"SQLite query timed out after {query_timeout}s: {query[:100]}...")
                raise QueryTimeoutError(f"Query timeout ({query_timeout}s)") from exc
            logger.error(f"SQLite query failed: {exc}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {exc}") from exc
        except sqlite3.Error as exc:
            logger.error(f"SQLite query failed: {exc}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {exc}") from exc

        logger.debug(
            f"Query executed in {(time.perf_counter() - start_time) * 1000:.2f}ms, "
            f"returned {len(rows)} rows"
        )
        return rows

    async def execute(self, statement: str, params: list[Any] | None = None) -> None:
        """Execute a statement that returns no rows, on a writable handle."""
        self._ensure_connected()
        try:
            await asyncio.to_thread(self._execute_sync, statement, params)
        except sqlite3.Error as exc:
            logger.error(f"SQLite statement failed: {exc}\nStatement: {statement[:200]}...")
            raise QueryError(f"Statement failed: {exc}") from exc

    async def get_schema(self) -> Schema:
        """Introspect schema via sqlite_master and PRAGMA calls."""
        self._ensure_connected()
        try:
            schema = await asyncio.to_thread(self._get_schema_sync)
        except sqlite3.Error as exc:
            logger.error(f"SQLite schema introspection failed: {exc}")
            raise SchemaError(f"Failed to introspect schema: {exc}") from exc
        logger.info(f"Introspected SQLite schema: found {len(schema)} tables")
        return schema

    async def close(self) -> None:
        """Close connector state."""
        self._connected = False

    def _describe(self) -> str:
        return str(self.path)

    def _open(self, writable: bool = False) -> sqlite3.Connection:
        if self.readonly and not writable:
            conn = sqlite3.connect(f"file:{self.path}?mode=ro", uri=True, check_same_thread=False)
        else:
            conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _test_connection_sync(self) -> None:
        conn = self._open()
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()

    def _fetch_all_sync(
        self,
        query: str,
        params: list[Any] | None,
        query_timeout: float,
    ) -> list[Row]:
        conn = self._open()
        deadline = time.monotonic() + query_timeout
        conn.set_progress_handler(
            lambda: 1 if time.monotonic() > deadline else 0,
            _PROGRESS_INTERVAL,
        )
        try:
            cursor = conn.execute(query, tuple(params or ()))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def _execute_sync(self, statement: str, params: list[Any] | None) -> None:
        conn = self._open(writable=True)
        try:
            conn.execute(statement, tuple(params or ()))
            conn.commit()
        finally:
            conn.close()

    def _get_schema_sync(self) -> Schema:
        conn = self._open()
        try:
            table_rows = conn.execute(
                """
                SELECT name FROM sqlite_master
                WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
                ORDER BY name
                """
            ).fetchall()

            tables: list[TableInfo] = []
            for table_row in table_rows:
                table_name = table_row["name"]
                quoted = _quote_identifier(table_name)

                columns = [
                    ColumnInfo(
                        name=col["name"],
                        data_type=col["type"] or "",
                        is_nullable=col["notnull"] == 0,
                        is_primary_key=col["pk"] > 0,
                        default_value=(
                            str(col["dflt_value"]) if col["dflt_value"] is not None else None
                        ),
                    )
                    for col in conn.execute(f"PRAGMA table_info({quoted})").fetchall()
                ]
                foreign_keys = [
                    ForeignKeyInfo(
                        column=fk["from"],
                        references_table=fk["table"],
                        # REFERENCES parent (no column list) targets the parent's primary key
                        references_column=fk["to"] or _primary_key_of(conn, fk["table"]),
                    )
                    for fk in conn.execute(f"PRAGMA foreign_key_list({quoted})").fetchall()
                ]
                tables.append(
                    TableInfo(
                        name=table_name,
                        columns=tuple(columns),
                        foreign_keys=tuple(foreign_keys),
                    )
                )
            return Schema.from_tables(tables)
        finally:
            conn.close()


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _primary_key_of(conn: sqlite3.Connection, table_name: str) -> str:
    rows = conn.execute(f"PRAGMA table_info({_quote_identifier(table_name)})").fetchall()
    pk_columns = sorted((row for row in rows if row["pk"] > 0), key=lambda row: row["pk"])
    return pk_columns[0]["name"] if pk_columns else "rowid"

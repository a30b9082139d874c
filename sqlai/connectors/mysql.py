"""
MySQL Connector

Async-compatible MySQL connector using mysql-connector-python.

The underlying driver is synchronous, so query and schema operations are
executed in worker threads via asyncio.to_thread. Connections come from a
driver-side pool created on connect(). Read queries carry a server-side
MAX_EXECUTION_TIME so a timed-out SELECT is aborted by MySQL itself.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from mysql.connector import Error as MySQLError
from mysql.connector import pooling

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

# ER_QUERY_TIMEOUT: "Query execution was interrupted, maximum statement execution time exceeded"
_MYSQL_QUERY_TIMEOUT_ERRNO = 3024


class MySQLConnector(BaseConnector):
    """MySQL database connector using mysql-connector-python."""

    db_type = DatabaseType.MYSQL
    explain_prefix = "EXPLAIN"

    def __init__(
        self,
        host: str,
        port: int = 3306,
        database: str = "",
        user: str = "root",
        password: str = "",
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self._pool: pooling.MySQLConnectionPool | None = None
        super().__init__(database=database, pool_size=pool_size, timeout=timeout, **kwargs)
        logger.info(f"Initialized {self.__class__.__name__} for {user}@{host}:{port}/{database}")

    async def connect(self) -> None:
        """Create the connection pool and validate credentials."""
        if self._connected and self._pool:
            return
        try:
            self._pool = await asyncio.to_thread(self._create_pool_sync)
            await asyncio.to_thread(self._test_connection_sync)
            self._connected = True
            logger.info(f"MySQL connected: {self.host}:{self.port}/{self.database}")
        except MySQLError as exc:
            logger.error(f"MySQL connection failed: {exc}")
            raise ConnectionError(f"Failed to connect to MySQL: {exc}") from exc

    async def fetch_all(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: float | None = None,
    ) -> list[Row]:
        """Execute SQL query and return rows."""
        self._ensure_connected()
        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout
        try:
            rows = await asyncio.to_thread(self._fetch_all_sync, query, params, query_timeout)
        except MySQLError as exc:
            if getattr(exc, "errno", None) == _MYSQL_QUERY_TIMEOUT_ERRNO:
                logger.error(f"MySQL query timed out after {query_timeout}s: {query[:100]}...")
                raise QueryTimeoutError(f"Query timeout ({query_timeout}s)") from exc
            logger.error(f"MySQL query failed: {exc}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {exc}") from exc

        logger.debug(
            f"Query executed in {(time.perf_counter() - start_time) * 1000:.2f}ms, "
            f"returned {len(rows)} rows"
        )
        return rows

    async def execute(self, statement: str, params: list[Any] | None = None) -> None:
        """Execute a statement that returns no rows."""
        self._ensure_connected()
        try:
            await asyncio.to_thread(self._execute_sync, statement, params)
        except MySQLError as exc:
            logger.error(f"MySQL statement failed: {exc}\nStatement: {statement[:200]}...")
            raise QueryError(f"Statement failed: {exc}") from exc

    async def get_schema(self) -> Schema:
        """Introspect schema via information_schema."""
        self._ensure_connected()
        try:
            schema = await asyncio.to_thread(self._get_schema_sync, self.database)
        except MySQLError as exc:
            logger.error(f"MySQL schema introspection failed: {exc}")
            raise SchemaError(f"Failed to introspect schema: {exc}") from exc
        logger.info(f"Introspected MySQL schema '{self.database}': found {len(schema)} tables")
        return schema

    async def close(self) -> None:
        """Drop the pool reference; pooled connections close when released."""
        self._pool = None
        self._connected = False

    def _describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    def _create_pool_sync(self) -> pooling.MySQLConnectionPool:
        kwargs = {
            "pool_name": f"sqlai_{self.host}_{self.port}_{self.database}",
            "pool_size": self.pool_size,
            "host": self.host,
            "port": self.port,
            "database": self.database or None,
            "user": self.user,
            "password": self.password,
            "autocommit": True,
            "connection_timeout": self.timeout,
        }
        kwargs.update(self.kwargs)
        return pooling.MySQLConnectionPool(**kwargs)

    def _get_connection(self):
        if self._pool is None:
            raise ConnectionError("Not connected to database. Call connect() first.")
        return self._pool.get_connection()

    def _test_connection_sync(self) -> None:
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT VERSION()")
            cursor.fetchone()
        finally:
            cursor.close()
            conn.close()

    def _fetch_all_sync(
        self,
        query: str,
        params: list[Any] | None,
        query_timeout: float,
    ) -> list[Row]:
        conn = self._get_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(f"SET SESSION MAX_EXECUTION_TIME = {int(query_timeout * 1000)}")
            if params is None:
                cursor.execute(query)
            else:
                cursor.execute(query, tuple(params))
            if cursor.with_rows:
                return cursor.fetchall()
            return []
        finally:
            cursor.close()
            conn.close()

    def _execute_sync(self, statement: str, params: list[Any] | None) -> None:
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(statement, tuple(params) if params else None)
        finally:
            cursor.close()
            conn.close()

    def _get_schema_sync(self, schema_name: str) -> Schema:
        conn = self._get_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(
                """
                SELECT table_name AS table_name
                FROM information_schema.tables
                WHERE table_schema = %s AND table_type = 'BASE TABLE'
                ORDER BY table_name
                """,
                (schema_name,),
            )
            table_rows = cursor.fetchall()

            tables: list[TableInfo] = []
            for table_row in table_rows:
                table_name = str(table_row["table_name"])

                cursor.execute(
                    """
                    SELECT
                        c.column_name AS column_name,
                        c.column_type AS column_type,
                        c.is_nullable AS is_nullable,
                        c.column_default AS column_default,
                        c.column_key AS column_key
                    FROM information_schema.columns c
                    WHERE c.table_schema = %s AND c.table_name = %s
                    ORDER BY c.ordinal_position
                    """,
                    (schema_name, table_name),
                )
                columns_rows = cursor.fetchall()

                cursor.execute(
                    """
                    SELECT
                        kcu.column_name AS column_name,
                        kcu.referenced_table_name AS foreign_table_name,
                        kcu.referenced_column_name AS foreign_column_name
                    FROM information_schema.key_column_usage kcu
                    WHERE kcu.table_schema = %s
                    AND kcu.table_name = %s
                    AND kcu.referenced_table_name IS NOT NULL
                    """,
                    (schema_name, table_name),
                )
                fk_rows = cursor.fetchall()

                columns = tuple(
                    ColumnInfo(
                        name=str(col_row["column_name"]),
                        data_type=str(col_row["column_type"]),
                        is_nullable=str(col_row["is_nullable"]).upper() == "YES",
                        is_primary_key=str(col_row["column_key"]).upper() == "PRI",
                        default_value=(
                            str(col_row["column_default"])
                            if col_row["column_default"] is not None
                            else None
                        ),
                    )
                    for col_row in columns_rows
                )
                foreign_keys = tuple(
                    ForeignKeyInfo(
                        column=str(row["column_name"]),
                        references_table=str(row["foreign_table_name"]),
                        references_column=str(row["foreign_column_name"]),
                    )
                    for row in fk_rows
                )
                tables.append(
                    TableInfo(name=table_name, columns=columns, foreign_keys=foreign_keys)
                )

            return Schema.from_tables(tables)
        finally:
            cursor.close()
            conn.close()

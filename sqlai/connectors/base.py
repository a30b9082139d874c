"""
Base Database Connector

Abstract base class for all database connectors. Provides a consistent
async interface for connecting to, querying, and introspecting databases.

All connectors must implement:
- connect(): Establish connection (pool or file handle)
- fetch_all(): Run a query with parameters and timeout, returning rows
- execute(): Run a statement that returns no rows
- get_schema(): Introspect base tables, columns and foreign keys
- close(): Clean up connections and pools
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar

from sqlai.schema.models import Schema

logger = logging.getLogger(__name__)


class DatabaseType(str, Enum):
    """Supported backends. The set is closed; each value has one connector class."""

    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"

    @classmethod
    def parse(cls, value: "str | DatabaseType") -> "DatabaseType":
        if isinstance(value, DatabaseType):
            return value
        normalized = value.strip().lower()
        if normalized == "postgres":
            normalized = "postgresql"
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unsupported database type: {value}") from None


# ============================================================================
# Errors
# ============================================================================


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """Error executing database query."""

    pass


class QueryTimeoutError(QueryError):
    """The backend aborted a query because its deadline passed."""

    pass


class SchemaError(ConnectorError):
    """Error introspecting database schema."""

    pass


# ============================================================================
# Base Connector
# ============================================================================


Row = dict[str, Any]


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    SQLite, MySQL and PostgreSQL connectors implement this interface so the
    rest of the application never branches on the backend.

    Features:
    - Async interface throughout (blocking drivers run in worker threads)
    - Query timeout configuration
    - Schema introspection into the normalized ``Schema`` model
    - Backend-native explain statements
    - Health checks

    Usage:
        connector = create_connector(database_type="sqlite", sqlite_path="shop.db")
        async with connector:
            rows = await connector.fetch_all("SELECT * FROM Products")
            schema = await connector.get_schema()
    """

    db_type: ClassVar[DatabaseType]
    explain_prefix: ClassVar[str]

    def __init__(
        self,
        database: str,
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ):
        """
        Initialize connector.

        Args:
            database: Database name (or file path for SQLite)
            pool_size: Connection pool size (default: 10)
            timeout: Query timeout in seconds (default: 30)
            **kwargs: Additional driver-specific parameters
        """
        self.database = database
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._connected = False

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection.

        Should be idempotent.

        Raises:
            ConnectionError: If connection fails
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def fetch_all(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: float | None = None,
    ) -> list[Row]:
        """
        Run a query and return every row as a column-name keyed dict.

        Args:
            query: SQL using the driver's parameter style
            params: Query parameters (optional)
            timeout: Deadline in seconds (overrides default)

        Raises:
            QueryTimeoutError: If the backend aborted on its deadline
            QueryError: If query execution fails
            ConnectionError: If not connected
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def execute(self, statement: str, params: list[Any] | None = None) -> None:
        """
        Run a statement that returns no rows (DDL).

        Raises:
            QueryError: If the statement fails
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def get_schema(self) -> Schema:
        """
        Introspect base tables, columns and foreign keys.

        All-or-nothing: a failing metadata query fails the whole call.

        Raises:
            SchemaError: If schema introspection fails
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def close(self) -> None:
        """
        Close database connection and clean up.

        Should be idempotent - safe to call multiple times.
        """
        pass  # pragma: no cover - abstract method

    async def fetch_one(self, query: str, params: list[Any] | None = None) -> Row | None:
        """Return the first row of a query, or None when it yields nothing."""
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def health_check(self) -> dict[str, Any]:
        """Run a trivial query and report whether the backend answers."""
        try:
            await self.fetch_one("SELECT 1")
            return {"healthy": True, "type": self.db_type.value}
        except ConnectorError as e:
            logger.warning(f"{self.db_type.value} health check failed: {e}")
            return {"healthy": False, "type": self.db_type.value, "error": str(e)}

    def explain_statement(self, sql: str) -> str:
        """Wrap a statement in the backend's explain facility."""
        return f"{self.explain_prefix} {sql}"

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise ConnectionError("Not connected to database. Call connect() first.")

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
        return False

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self._describe()} ({status})>"

    def _describe(self) -> str:
        return self.database

"""
Unit tests for QueryExecutor.

Uses a real SQLite database for the happy paths and mocked connectors for
deadline and failure translation.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from sqlai.connectors.base import DatabaseType, QueryError, QueryTimeoutError
from sqlai.connectors.sqlite import SQLiteConnector
from sqlai.errors import ExecutionFailed, ExecutionTimeout, ValidationRejected
from sqlai.execution.executor import QueryExecutor, apply_row_limit


class TestApplyRowLimit:
    """Test row ceiling injection."""

    def test_injects_limit_before_terminator(self):
        assert apply_row_limit("SELECT * FROM Orders;", 100) == (
            "SELECT * FROM Orders LIMIT 100;",
            True,
        )

    def test_injects_limit_without_terminator(self):
        assert apply_row_limit("SELECT * FROM Orders", 5) == ("SELECT * FROM Orders LIMIT 5;", True)

    def test_explicit_limit_kept(self):
        sql = "SELECT * FROM Orders LIMIT 5;"
        assert apply_row_limit(sql, 100) == (sql, False)

    def test_lowercase_limit_kept(self):
        sql = "select * from orders limit 20;"
        assert apply_row_limit(sql, 100) == (sql, False)

    def test_subquery_limit_counts_as_explicit(self):
        sql = "SELECT * FROM (SELECT * FROM Orders LIMIT 5) t;"
        assert apply_row_limit(sql, 100) == (sql, False)

    def test_limit_without_number_is_not_explicit(self):
        sql = "SELECT limit_value FROM Settings;"
        limited, applied = apply_row_limit(sql, 10)
        assert applied is True
        assert limited.endswith("LIMIT 10;")

    def test_limit_lands_outside_trailing_comment(self):
        limited, applied = apply_row_limit("SELECT * FROM Orders -- all orders\n;", 10)
        assert applied is True
        assert "--" not in limited
        assert limited.endswith("LIMIT 10;")

    def test_limit_inside_comment_is_not_explicit(self):
        limited, applied = apply_row_limit("SELECT * FROM Orders /* LIMIT 50 */;", 10)
        assert applied is True
        assert "LIMIT 50" not in limited
        assert limited.endswith("LIMIT 10;")


@pytest.fixture
async def sqlite_connector(sqlite_db):
    connector = SQLiteConnector(sqlite_db)
    await connector.connect()
    yield connector
    await connector.close()


def _mock_connector(fetch_all):
    connector = MagicMock()
    connector.db_type = DatabaseType.SQLITE
    connector.fetch_all = fetch_all
    return connector


class TestExecute:
    """Test statement execution."""

    @pytest.mark.asyncio
    async def test_returns_rows_with_ceiling(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector)

        result = await executor.execute("SELECT Name FROM Customers ORDER BY CustomerID")

        assert result.row_count == 3
        assert result.results[0] == {"Name": "Ana"}
        assert result.limit_applied is True
        assert result.sql == "SELECT Name FROM Customers ORDER BY CustomerID LIMIT 1000;"
        assert result.execution_time_ms >= 0

    @pytest.mark.asyncio
    async def test_max_rows_override(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector, max_rows=1000)

        result = await executor.execute("SELECT * FROM Orders", max_rows=2)

        assert result.row_count == 2
        assert result.sql.endswith("LIMIT 2;")

    @pytest.mark.asyncio
    async def test_explicit_limit_respected(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector, max_rows=2)

        result = await executor.execute("SELECT * FROM Orders LIMIT 3")

        assert result.row_count == 3
        assert result.limit_applied is False

    @pytest.mark.asyncio
    async def test_trailing_comment_keeps_row_ceiling(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector, max_rows=1)

        result = await executor.execute("SELECT * FROM Orders -- all orders")

        assert result.row_count == 1
        assert result.limit_applied is True
        assert result.sql.endswith("LIMIT 1;")

    @pytest.mark.asyncio
    async def test_with_statement(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector)

        result = await executor.execute(
            "WITH big AS (SELECT * FROM Orders WHERE Quantity > 5) SELECT COUNT(*) AS n FROM big"
        )

        assert result.results == [{"n": 2}]

    @pytest.mark.asyncio
    async def test_unsafe_statement_never_reaches_database(self):
        fetch_all = AsyncMock()
        executor = QueryExecutor(_mock_connector(fetch_all))

        with pytest.raises(ValidationRejected):
            await executor.execute("DELETE FROM Orders")

        fetch_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_table_is_execution_failure(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector)

        with pytest.raises(ExecutionFailed) as exc_info:
            await executor.execute("SELECT * FROM Missing")

        assert "no such table" in exc_info.value.message
        assert exc_info.value.kind == "execution_failed"


class TestDeadline:
    """Test timeout translation."""

    @pytest.mark.asyncio
    async def test_slow_query_times_out(self):
        async def slow_fetch(query, params=None, timeout=None):
            await asyncio.sleep(5)
            return []

        executor = QueryExecutor(_mock_connector(slow_fetch), timeout_ms=50)

        with pytest.raises(ExecutionTimeout) as exc_info:
            await executor.execute("SELECT * FROM Orders")

        assert exc_info.value.timeout_ms == 50
        assert exc_info.value.message == "Query timed out after 50ms"
        assert exc_info.value.kind == "execution_timeout"

    @pytest.mark.asyncio
    async def test_backend_timeout_is_execution_timeout(self):
        fetch_all = AsyncMock(side_effect=QueryTimeoutError("Query timeout (1s)"))
        executor = QueryExecutor(_mock_connector(fetch_all), timeout_ms=1000)

        with pytest.raises(ExecutionTimeout):
            await executor.execute("SELECT * FROM Orders")

    @pytest.mark.asyncio
    async def test_deadline_passed_to_connector(self):
        fetch_all = AsyncMock(return_value=[])
        executor = QueryExecutor(_mock_connector(fetch_all), timeout_ms=2500)

        await executor.execute("SELECT 1")

        assert fetch_all.call_args.kwargs["timeout"] == 2.5

    @pytest.mark.asyncio
    async def test_query_error_is_execution_failure(self):
        fetch_all = AsyncMock(side_effect=QueryError("syntax error"))
        executor = QueryExecutor(_mock_connector(fetch_all))

        with pytest.raises(ExecutionFailed):
            await executor.execute("SELECT * FROM Orders")


class TestExplainPlan:
    """Test explain plans."""

    @pytest.mark.asyncio
    async def test_sqlite_plan(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector)

        plan = await executor.explain_plan("SELECT * FROM Orders WHERE OrderID = 1")

        assert plan
        assert "detail" in plan[0]

    @pytest.mark.asyncio
    async def test_plan_requires_safe_statement(self, sqlite_connector):
        executor = QueryExecutor(sqlite_connector)

        with pytest.raises(ValidationRejected):
            await executor.explain_plan("DROP TABLE Orders")

"""
Query executor.

Runs certified statements against the connected database:

- Re-validates every statement, whoever produced it
- Injects a row ceiling when the statement declares no LIMIT
- Races the database call against a deadline; a late result is discarded
- Never retries
"""

import asyncio
import logging
import re
import time
from typing import Any

import sqlparse

from sqlai.connectors.base import BaseConnector, QueryError, QueryTimeoutError
from sqlai.errors import ExecutionFailed, ExecutionTimeout
from sqlai.models import ExecutionResult
from sqlai.validation.sanitizer import validate_sql

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 1000
DEFAULT_TIMEOUT_MS = 30000

_LIMIT_CLAUSE = re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE)
_TERMINATOR = re.compile(r";?\s*$")


def apply_row_limit(sql: str, max_rows: int) -> tuple[str, bool]:
    """
    Append ``LIMIT max_rows`` before the terminator unless a LIMIT is declared.

    An explicit ``LIMIT <number>`` anywhere in the statement is left alone,
    including one inside a subquery. Comments are stripped first, so a
    trailing "--" comment cannot swallow the clause and a LIMIT written
    inside a comment does not count.

    Returns:
        (statement, whether the limit was injected)
    """
    sql = sqlparse.format(sql, strip_comments=True).strip()
    if _LIMIT_CLAUSE.search(sql):
        return sql, False
    return _TERMINATOR.sub(f" LIMIT {max_rows};", sql, count=1), True


class QueryExecutor:
    """
    Execute validated SELECT statements with a row ceiling and a deadline.

    Args:
        connector: Connected database connector
        max_rows: Row ceiling injected into statements without LIMIT
        timeout_ms: Execution deadline in milliseconds
    """

    def __init__(
        self,
        connector: BaseConnector,
        max_rows: int = DEFAULT_MAX_ROWS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.connector = connector
        self.max_rows = max_rows
        self.timeout_ms = timeout_ms

    async def execute(
        self,
        sql: str,
        *,
        max_rows: int | None = None,
        timeout_ms: int | None = None,
    ) -> ExecutionResult:
        """
        Validate, limit and run a statement.

        Raises:
            ValidationRejected: If the statement fails the sanitizer
            ExecutionTimeout: If the deadline expires first
            ExecutionFailed: If the database rejects the statement
        """
        statement = validate_sql(sql)
        limited_sql, limit_applied = apply_row_limit(statement, max_rows or self.max_rows)
        deadline_ms = timeout_ms or self.timeout_ms

        start_time = time.perf_counter()
        rows = await self._run(limited_sql, deadline_ms)
        execution_time_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"Query returned {len(rows)} rows in {execution_time_ms:.1f}ms",
            extra={"row_count": len(rows), "limit_applied": limit_applied},
        )
        return ExecutionResult(
            sql=limited_sql,
            results=rows,
            row_count=len(rows),
            execution_time_ms=round(execution_time_ms, 2),
            limit_applied=limit_applied,
        )

    async def explain_plan(self, sql: str, *, timeout_ms: int | None = None) -> list[dict[str, Any]]:
        """Validate a statement and return the backend's explain output for it."""
        statement = validate_sql(sql)
        explain_sql = self.connector.explain_statement(statement)
        logger.debug(f"Explaining query: {explain_sql[:200]}")
        return await self._run(explain_sql, timeout_ms or self.timeout_ms)

    async def _run(self, sql: str, timeout_ms: int) -> list[dict[str, Any]]:
        timeout_seconds = timeout_ms / 1000
        try:
            return await asyncio.wait_for(
                self.connector.fetch_all(sql, timeout=timeout_seconds),
                timeout=timeout_seconds,
            )
        except (asyncio.TimeoutError, QueryTimeoutError) as e:
            logger.error(f"Query timed out after {timeout_ms}ms: {sql[:100]}...")
            raise ExecutionTimeout(timeout_ms, sql=sql) from e
        except QueryError as e:
            raise ExecutionFailed(str(e), context={"sql": sql}) from e

"""
History recorders.

``InMemoryHistoryRecorder`` keeps a bounded newest-first log for a single
process. ``PostgresHistoryRecorder`` persists every attempt and grows
without bound. Both are constructed explicitly and injected into the
service, which treats recorder failures as non-fatal.
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from collections import deque

import asyncpg

from sqlai.history.models import (
    DEFAULT_QUERY_LIMIT,
    HistoryEntry,
    HistoryFilter,
    HistoryStats,
    compute_stats,
)

logger = logging.getLogger(__name__)


class HistoryRecorder(ABC):
    """Append-only log of question-to-SQL attempts."""

    async def initialize(self) -> None:
        """Prepare storage. No-op by default."""

    async def close(self) -> None:
        """Release storage resources. No-op by default."""

    @abstractmethod
    async def record(self, entry: HistoryEntry) -> HistoryEntry:
        """Store an entry and return it with its assigned id."""

    @abstractmethod
    async def query(
        self,
        filter: HistoryFilter | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[HistoryEntry]:
        """Entries matching ``filter``, newest first."""

    @abstractmethod
    async def get(self, entry_id: int) -> HistoryEntry | None:
        """Entry by id, or None."""

    @abstractmethod
    async def stats(self) -> HistoryStats:
        """Aggregate statistics over every stored entry."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every entry; returns how many were removed."""


class InMemoryHistoryRecorder(HistoryRecorder):
    """Bounded in-process history; the oldest entry is evicted first."""

    def __init__(self, max_entries: int = 1000) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: deque[HistoryEntry] = deque(maxlen=max_entries)
        self._ids = itertools.count(1)

    async def record(self, entry: HistoryEntry) -> HistoryEntry:
        stored = entry.model_copy(update={"id": next(self._ids)})
        self._entries.appendleft(stored)
        return stored

    async def query(
        self,
        filter: HistoryFilter | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[HistoryEntry]:
        criteria = filter or HistoryFilter()
        matches = (entry for entry in self._entries if criteria.matches(entry))
        return list(itertools.islice(matches, max(limit, 0)))

    async def get(self, entry_id: int) -> HistoryEntry | None:
        return next((entry for entry in self._entries if entry.id == entry_id), None)

    async def stats(self) -> HistoryStats:
        return compute_stats(list(self._entries))

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {count} history entries")
        return count

    def __len__(self) -> int:
        return len(self._entries)


_CREATE_HISTORY_TABLE = """
CREATE TABLE IF NOT EXISTS query_history (
    id BIGSERIAL PRIMARY KEY,
    request_id TEXT,
    question TEXT NOT NULL,
    sql TEXT,
    success BOOLEAN NOT NULL,
    row_count INTEGER,
    generation_time_ms DOUBLE PRECISION,
    execution_time_ms DOUBLE PRECISION,
    total_time_ms DOUBLE PRECISION,
    error TEXT,
    created_at TIMESTAMPTZ NOT NULL
);
"""

_CREATE_HISTORY_CREATED_INDEX = """
CREATE INDEX IF NOT EXISTS query_history_created_at_idx
ON query_history (created_at DESC);
"""

_HISTORY_COLUMNS = """
    id,
    request_id,
    question,
    sql,
    success,
    row_count,
    generation_time_ms,
    execution_time_ms,
    total_time_ms,
    error,
    created_at
"""


class PostgresHistoryRecorder(HistoryRecorder):
    """Persist history in a PostgreSQL table."""

    def __init__(self, database_url: str) -> None:
        self._database_url = database_url
        self._pool: asyncpg.Pool | None = None

    async def initialize(self) -> None:
        if self._pool is None:
            dsn = self._normalize_postgres_url(self._database_url)
            self._pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=5)
        await self._pool.execute(_CREATE_HISTORY_TABLE)
        await self._pool.execute(_CREATE_HISTORY_CREATED_INDEX)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def record(self, entry: HistoryEntry) -> HistoryEntry:
        self._ensure_pool()
        row = await self._pool.fetchrow(
            f"""
            INSERT INTO query_history (
                request_id,
                question,
                sql,
                success,
                row_count,
                generation_time_ms,
                execution_time_ms,
                total_time_ms,
                error,
                created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING {_HISTORY_COLUMNS}
            """,
            entry.request_id,
            entry.question,
            entry.sql,
            entry.success,
            entry.row_count,
            entry.generation_time_ms,
            entry.execution_time_ms,
            entry.total_time_ms,
            entry.error,
            entry.timestamp,
        )
        if row is None:
            raise RuntimeError("Failed to persist history entry")
        return self._row_to_entry(row)

    async def query(
        self,
        filter: HistoryFilter | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[HistoryEntry]:
        self._ensure_pool()
        criteria = filter or HistoryFilter()
        conditions: list[str] = []
        params: list = []
        if criteria.success is not None:
            params.append(criteria.success)
            conditions.append(f"success = ${len(params)}")
        if criteria.since is not None:
            params.append(criteria.since)
            conditions.append(f"created_at >= ${len(params)}")
        if criteria.until is not None:
            params.append(criteria.until)
            conditions.append(f"created_at <= ${len(params)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(max(limit, 0))

        rows = await self._pool.fetch(
            f"""
            SELECT {_HISTORY_COLUMNS}
            FROM query_history
            {where}
            ORDER BY created_at DESC, id DESC
            LIMIT ${len(params)}
            """,
            *params,
        )
        return [self._row_to_entry(row) for row in rows]

    async def get(self, entry_id: int) -> HistoryEntry | None:
        self._ensure_pool()
        row = await self._pool.fetchrow(
            f"SELECT {_HISTORY_COLUMNS} FROM query_history WHERE id = $1",
            entry_id,
        )
        return self._row_to_entry(row) if row is not None else None

    async def stats(self) -> HistoryStats:
        self._ensure_pool()
        row = await self._pool.fetchrow(
            """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE success) AS successful,
                AVG(generation_time_ms) FILTER (WHERE success) AS avg_generation_time_ms,
                AVG(execution_time_ms) FILTER (WHERE success) AS avg_execution_time_ms
            FROM query_history
            """
        )
        return HistoryStats.build(
            total=int(row["total"]),
            successful=int(row["successful"]),
            avg_generation_time_ms=row["avg_generation_time_ms"],
            avg_execution_time_ms=row["avg_execution_time_ms"],
        )

    async def clear(self) -> int:
        self._ensure_pool()
        result = await self._pool.execute("DELETE FROM query_history")
        try:
            deleted_count = int(str(result).split()[-1])
        except (ValueError, IndexError):
            deleted_count = 0
        logger.info(f"Cleared {deleted_count} history entries")
        return deleted_count

    def _ensure_pool(self) -> None:
        if self._pool is None:
            raise RuntimeError("PostgresHistoryRecorder not initialized")

    @staticmethod
    def _normalize_postgres_url(url: str) -> str:
        if url.startswith("postgresql+asyncpg://"):
            return "postgresql://" + url[len("postgresql+asyncpg://") :]
        return url

    @staticmethod
    def _row_to_entry(row: asyncpg.Record) -> HistoryEntry:
        return HistoryEntry(
            id=int(row["id"]),
            request_id=row["request_id"],
            question=row["question"],
            sql=row["sql"],
            success=bool(row["success"]),
            row_count=row["row_count"],
            generation_time_ms=row["generation_time_ms"],
            execution_time_ms=row["execution_time_ms"],
            total_time_ms=row["total_time_ms"],
            error=row["error"],
            timestamp=row["created_at"],
        )


def create_history_recorder(
    backend: str = "memory",
    max_entries: int = 1000,
    database_url: str | None = None,
) -> HistoryRecorder:
    """Build the configured recorder."""
    if backend == "memory":
        return InMemoryHistoryRecorder(max_entries=max_entries)
    if backend == "postgres":
        if not database_url:
            raise ValueError("HISTORY_DATABASE_URL must be set for postgres history.")
        return PostgresHistoryRecorder(database_url)
    raise ValueError(f"Unsupported history backend: {backend}")

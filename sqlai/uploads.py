"""
Uploaded tables.

Tables created from user files carry the reserved ``upload_`` prefix. File
parsing and ingestion happen elsewhere; this module owns the rest of the
contract: naming, listing, dropping, and invalidating the schema cache
whenever the table set changes so the next prompt sees the new tables.
"""

from __future__ import annotations

import logging
import re
import time
from pathlib import PurePath

from sqlai.connectors.base import BaseConnector, DatabaseType, QueryError
from sqlai.errors import ExecutionFailed, InvalidUploadTable
from sqlai.prompts.builder import UPLOAD_TABLE_PREFIX
from sqlai.schema.cache import SchemaCache
from sqlai.schema.introspector import schema_cache_key

logger = logging.getLogger(__name__)

_UPLOAD_TABLE_NAME = re.compile(rf"^{UPLOAD_TABLE_PREFIX}[A-Za-z0-9_]+$")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_MAX_BASE_NAME_LENGTH = 50

# "_" is a LIKE wildcard, so matches are re-checked against the prefix
_LIST_QUERIES: dict[DatabaseType, str] = {
    DatabaseType.SQLITE: (
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name LIKE 'upload%' ORDER BY name"
    ),
    DatabaseType.MYSQL: (
        "SELECT table_name AS name FROM information_schema.tables "
        "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE' "
        "AND table_name LIKE 'upload%' ORDER BY table_name"
    ),
    DatabaseType.POSTGRESQL: (
        "SELECT tablename AS name FROM pg_tables "
        "WHERE schemaname = $1 AND tablename LIKE 'upload%' ORDER BY tablename"
    ),
}


def _base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits)) or "0"


def generate_upload_table_name(filename: str, timestamp_ms: int | None = None) -> str:
    """
    Table name for an uploaded file: ``upload_<base>_<base36 millis>``.

    ``<base>`` is the file stem lowercased, with every character outside
    ``[a-z0-9]`` replaced by ``_``, truncated to 50 characters.
    """
    stem = PurePath(filename).stem
    base = re.sub(r"[^a-zA-Z0-9]", "_", stem).lower()[:_MAX_BASE_NAME_LENGTH]
    millis = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{UPLOAD_TABLE_PREFIX}{base}_{_base36(millis)}"


def is_upload_table(name: str) -> bool:
    return bool(_UPLOAD_TABLE_NAME.match(name))


def _quote_identifier(db_type: DatabaseType, name: str) -> str:
    if db_type is DatabaseType.MYSQL:
        return f"`{name}`"
    return f'"{name}"'


class UploadedTables:
    """Uploaded-table operations against one connected database."""

    def __init__(self, connector: BaseConnector, cache: SchemaCache) -> None:
        self.connector = connector
        self.cache = cache

    async def list_uploaded_tables(self) -> list[str]:
        """Names of uploaded tables in the connected database."""
        query = _LIST_QUERIES[self.connector.db_type]
        params = (
            [getattr(self.connector, "schema_name", "public")]
            if self.connector.db_type is DatabaseType.POSTGRESQL
            else None
        )
        try:
            rows = await self.connector.fetch_all(query, params)
        except QueryError as e:
            raise ExecutionFailed(f"Failed to list uploaded tables: {e}") from e
        names = [str(row.get("name") or next(iter(row.values()))) for row in rows]
        return [name for name in names if name.startswith(UPLOAD_TABLE_PREFIX)]

    async def drop_uploaded_table(self, table_name: str) -> None:
        """
        Drop an uploaded table and invalidate the cached schema.

        Raises:
            InvalidUploadTable: If the name lacks the upload prefix
            ExecutionFailed: If the database refuses the drop
        """
        if not is_upload_table(table_name):
            raise InvalidUploadTable(
                "Can only delete uploaded tables",
                context={"table": table_name, "required_prefix": UPLOAD_TABLE_PREFIX},
            )
        quoted = _quote_identifier(self.connector.db_type, table_name)
        try:
            await self.connector.execute(f"DROP TABLE IF EXISTS {quoted}")
        except QueryError as e:
            raise ExecutionFailed(f"Failed to drop {table_name}: {e}") from e
        logger.info(f"Dropped uploaded table {table_name}")
        self._invalidate()

    def register_uploaded_table(self, table_name: str) -> None:
        """
        Record that ingestion created an uploaded table.

        Raises:
            InvalidUploadTable: If the name lacks the upload prefix
        """
        if not is_upload_table(table_name):
            raise InvalidUploadTable(
                f"Uploaded tables must start with '{UPLOAD_TABLE_PREFIX}'",
                context={"table": table_name},
            )
        logger.info(f"Registered uploaded table {table_name}")
        self._invalidate()

    def _invalidate(self) -> None:
        self.cache.invalidate(schema_cache_key(self.connector))

"""Connector factory for the supported backends."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

from sqlai.config import DatabaseSettings
from sqlai.connectors.base import BaseConnector, DatabaseType
from sqlai.connectors.mysql import MySQLConnector
from sqlai.connectors.postgres import PostgresConnector
from sqlai.connectors.sqlite import SQLiteConnector

_POSTGRES_SCHEMES = {"postgres", "postgresql"}
_MYSQL_SCHEMES = {"mysql"}
_SQLITE_SCHEMES = {"sqlite"}


def infer_database_type(database_url: str) -> DatabaseType:
    """Infer logical database type from connection URL scheme."""
    parsed = _parse_url(database_url)
    scheme = parsed.scheme.split("+")[0].lower()
    if scheme in _POSTGRES_SCHEMES:
        return DatabaseType.POSTGRESQL
    if scheme in _MYSQL_SCHEMES:
        return DatabaseType.MYSQL
    if scheme in _SQLITE_SCHEMES:
        return DatabaseType.SQLITE
    raise ValueError(f"Unsupported database URL scheme: {parsed.scheme}")


def resolve_database_type(
    database_type: str | DatabaseType | None,
    database_url: str | None,
) -> DatabaseType:
    """Resolve target database type from explicit type or URL."""
    if database_type:
        return DatabaseType.parse(database_type)
    if database_url:
        return infer_database_type(database_url)
    raise ValueError("Either database_type or database_url is required.")


def create_connector(
    *,
    database_type: str | DatabaseType | None = None,
    database_url: str | None = None,
    sqlite_path: str | Path | None = None,
    sqlite_readonly: bool = True,
    schema_name: str = "public",
    pool_size: int = 10,
    timeout: int = 30,
    **kwargs,
) -> BaseConnector:
    """Create a typed connector instance from an explicit type and/or URL."""
    target_type = resolve_database_type(database_type, database_url)

    if target_type is DatabaseType.SQLITE:
        path = sqlite_path
        if path is None and database_url:
            path = _sqlite_path_from_url(database_url)
        if path is None:
            raise ValueError("SQLite requires sqlite_path or a sqlite:/// URL.")
        return SQLiteConnector(path=path, readonly=sqlite_readonly, timeout=timeout, **kwargs)

    if not database_url:
        raise ValueError(f"{target_type.value} requires a database URL.")
    parsed = _parse_url(database_url)
    if not parsed.hostname:
        raise ValueError("Invalid database URL: host is required.")
    db_name = parsed.path.lstrip("/")

    if target_type is DatabaseType.POSTGRESQL:
        return PostgresConnector(
            host=parsed.hostname,
            port=parsed.port or 5432,
            database=db_name or "postgres",
            user=unquote(parsed.username or "postgres"),
            password=unquote(parsed.password or ""),
            schema_name=schema_name,
            pool_size=pool_size,
            timeout=timeout,
            **kwargs,
        )

    return MySQLConnector(
        host=parsed.hostname,
        port=parsed.port or 3306,
        database=db_name or "",
        user=unquote(parsed.username or "root"),
        password=unquote(parsed.password or ""),
        pool_size=pool_size,
        timeout=timeout,
        **kwargs,
    )


def create_connector_from_settings(settings: DatabaseSettings, timeout: int = 30) -> BaseConnector:
    """Build the startup connector from DATABASE_* configuration."""
    return create_connector(
        database_type=settings.db_type,
        database_url=settings.url,
        sqlite_path=settings.sqlite_path,
        sqlite_readonly=settings.sqlite_readonly,
        schema_name=settings.schema_name,
        pool_size=settings.pool_size,
        timeout=timeout,
    )


def _parse_url(database_url: str):
    normalized = database_url.replace("postgresql+asyncpg://", "postgresql://")
    return urlparse(normalized)


def _sqlite_path_from_url(database_url: str) -> str:
    # sqlite:///relative.db -> relative.db, sqlite:////abs/path.db -> /abs/path.db
    prefix = "sqlite:///"
    if not database_url.startswith(prefix):
        raise ValueError(f"Invalid SQLite URL: {database_url}")
    return database_url[len(prefix):]

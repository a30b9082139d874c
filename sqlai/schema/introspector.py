"""
Schema introspection entry point.

Wraps a connector's ``get_schema`` with the pipeline's error taxonomy and
the schema cache: callers ask for the schema of the connected database and
get a cached snapshot when one is live, a fresh introspection otherwise.
Failed introspections are never cached.
"""

import logging
import time

from sqlai.connectors.base import BaseConnector, ConnectorError
from sqlai.errors import IntrospectionFailed
from sqlai.schema.cache import SchemaCache, build_cache_key
from sqlai.schema.models import Schema

logger = logging.getLogger(__name__)


async def introspect_schema(connector: BaseConnector) -> Schema:
    """
    Read base tables, columns and foreign keys from a live connection.

    Raises:
        IntrospectionFailed: If any metadata query fails
    """
    start_time = time.perf_counter()
    try:
        schema = await connector.get_schema()
    except ConnectorError as e:
        logger.error(
            f"Schema introspection failed for {connector.db_type.value}: {e}",
            extra={"db_type": connector.db_type.value, "database": connector.database},
        )
        raise IntrospectionFailed(
            f"Failed to introspect {connector.db_type.value} schema: {e}",
            context={"db_type": connector.db_type.value, "database": connector.database},
        ) from e

    logger.info(
        f"Introspected {len(schema)} tables in {(time.perf_counter() - start_time) * 1000:.1f}ms",
        extra={"db_type": connector.db_type.value, "database": connector.database},
    )
    return schema


def schema_cache_key(connector: BaseConnector) -> str:
    """Cache key of the database a connector points at."""
    return build_cache_key(connector.db_type, connector.database)


async def load_schema(
    connector: BaseConnector,
    cache: SchemaCache,
    *,
    force_refresh: bool = False,
) -> Schema:
    """Return the cached schema, introspecting and caching on a miss."""
    key = schema_cache_key(connector)
    if not force_refresh:
        cached = cache.get(key)
        if cached is not None:
            return cached

    schema = await introspect_schema(connector)
    cache.set(key, schema)
    return schema

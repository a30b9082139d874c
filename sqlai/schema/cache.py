"""
Schema cache.

Size- and time-bounded store of introspected schemas keyed by
``{db_type}:{database}``. Built on cachetools' TLRUCache so every entry
carries its own expiry, fixed when it is written: reading an entry moves it
to the most-recently-used position but never extends its lifetime.

The cache must be invalidated whenever the table set changes (an uploaded
table is created or dropped); see ``sqlai.uploads``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from cachetools import TLRUCache

from sqlai.connectors.base import DatabaseType
from sqlai.schema.models import Schema

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 50
DEFAULT_TTL_SECONDS = 300.0


def build_cache_key(db_type: DatabaseType | str, database: str) -> str:
    """Cache key for a database: ``"{db_type}:{database}"``."""
    value = db_type.value if isinstance(db_type, DatabaseType) else str(db_type)
    return f"{value}:{database}"


def _time_to_use(key: str, value: tuple[Schema, float], now: float) -> float:
    _, ttl = value
    return now + ttl


class SchemaCache:
    """
    Thread-safe LRU cache of schemas with per-entry TTL.

    Args:
        max_size: Maximum number of entries before LRU eviction
        ttl_seconds: Default time-to-live applied by ``set``
        timer: Clock returning seconds; injectable for tests
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._cache: TLRUCache = TLRUCache(maxsize=max_size, ttu=_time_to_use, timer=timer)
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Schema | None:
        """Return the cached schema, or None when absent or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                logger.debug(f"Schema cache miss: {key}")
                return None
            self._hits += 1
            logger.debug(f"Schema cache hit: {key}")
            return entry[0]

    def set(self, key: str, schema: Schema, ttl: float | None = None) -> None:
        """Store a schema; ``ttl`` overrides the default lifetime in seconds."""
        lifetime = self.ttl_seconds if ttl is None else ttl
        if lifetime <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            self._cache[key] = (schema, lifetime)
        logger.debug(f"Cached schema for {key} ({len(schema)} tables, ttl={lifetime}s)")

    def contains(self, key: str) -> bool:
        """Whether a live entry exists. Does not touch recency."""
        with self._lock:
            return key in self._cache

    def invalidate(self, key: str) -> bool:
        """Remove one entry. Returns whether anything was removed."""
        with self._lock:
            removed = self._cache.pop(key, None) is not None
        if removed:
            logger.info(f"Invalidated schema cache entry: {key}")
        return removed

    def invalidate_all(self) -> None:
        """Remove every entry."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Cleared schema cache ({count} entries)")

    def stats(self) -> dict[str, Any]:
        """Snapshot of live entries: size, capacity, keys plus hit/miss counters."""
        with self._lock:
            self._cache.expire()
            return {
                "size": len(self._cache),
                "capacity": self.max_size,
                "keys": list(self._cache.keys()),
                "hits": self._hits,
                "misses": self._misses,
            }

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)

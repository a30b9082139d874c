"""
Schema Routes

Schema renderings and schema cache management.
"""

import logging
from typing import Literal

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse

from sqlai.api.models import CacheClearRequest, CacheStatsResponse, MessageResponse, SchemaResponse
from sqlai.schema.formatter import (
    format_schema_as_json,
    format_schema_detailed,
    format_schema_for_prompt,
)
from sqlai.service import SQLService

logger = logging.getLogger(__name__)

router = APIRouter()


def _service() -> SQLService:
    from sqlai.api.main import get_service

    return get_service()


@router.get("/schema", response_model=None)
async def get_schema(
    format: Literal["json", "text", "detailed"] = Query("json", description="Rendering"),
    refresh: bool = Query(False, description="Bypass the schema cache"),
) -> SchemaResponse | PlainTextResponse:
    """
    Schema of the connected database.

    ``text`` is the rendering given to the AI, ``detailed`` adds types and
    keys, ``json`` is a structured document.
    """
    schema = await _service().get_schema(force_refresh=refresh)

    if format == "text":
        return PlainTextResponse(format_schema_for_prompt(schema))
    if format == "detailed":
        return PlainTextResponse(format_schema_detailed(schema))
    return SchemaResponse(schema=format_schema_as_json(schema), table_count=len(schema))


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats() -> CacheStatsResponse:
    return CacheStatsResponse(cache=_service().cache.stats())


@router.post("/cache/clear", response_model=MessageResponse)
async def clear_cache(request: CacheClearRequest | None = None) -> MessageResponse:
    """Drop one cache key, or every key when none is given."""
    cache = _service().cache
    key = request.key if request else None

    if key:
        cache.invalidate(key)
        logger.info(f"Schema cache key cleared: {key}")
        return MessageResponse(message=f"Cache key '{key}' cleared")

    cache.invalidate_all()
    logger.info("Schema cache cleared")
    return MessageResponse(message="All cache cleared")

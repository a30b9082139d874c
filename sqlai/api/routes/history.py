"""
History Routes

Query history listing, statistics and clearing.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Query

from sqlai.api.models import HistoryResponse, MessageResponse
from sqlai.history.models import DEFAULT_QUERY_LIMIT, HistoryFilter
from sqlai.service import SQLService

logger = logging.getLogger(__name__)

router = APIRouter()


def _service() -> SQLService:
    from sqlai.api.main import get_service

    return get_service()


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    limit: int = Query(DEFAULT_QUERY_LIMIT, gt=0, le=1000),
    success: bool | None = Query(None, description="Only successful (true) or failed (false)"),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
) -> HistoryResponse:
    """Recent attempts, newest first, with aggregate statistics."""
    recorder = _service().history
    entries = await recorder.query(
        HistoryFilter(success=success, since=since, until=until),
        limit=limit,
    )
    return HistoryResponse(history=entries, stats=await recorder.stats())


@router.delete("/history", response_model=MessageResponse)
async def clear_history() -> MessageResponse:
    removed = await _service().history.clear()
    logger.info(f"Cleared {removed} history entries")
    return MessageResponse(message="History cleared")

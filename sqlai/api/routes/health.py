"""
Health Check Routes

Reports whether the target database answers.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from sqlai import __version__
from sqlai.api.models import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> JSONResponse:
    """
    Database health check.

    Returns:
        200 OK when the database answers
        503 Service Unavailable when it does not (status "degraded")
    """
    from sqlai.api.main import app_state

    connector = app_state["connector"]
    if connector is None:
        database = {"healthy": False, "type": None, "error": "Connector not initialized"}
        logger.warning("Health check: connector not initialized")
    else:
        database = await connector.health_check()

    healthy = bool(database.get("healthy"))
    response_data = HealthResponse(
        status="healthy" if healthy else "degraded",
        version=__version__,
        timestamp=datetime.now(UTC),
        database=database,
    )
    status_code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content=response_data.model_dump(mode="json"),
    )

"""
FastAPI Application

HTTP surface of the SQL AI engine with:
- Lifespan management for connector, cache, history and provider
- CORS middleware for dashboard integration
- Exception handlers mapping failure kinds to HTTP statuses
- Query, schema, history, cache, upload and health endpoints

Usage:
    uvicorn sqlai.api.main:app --reload --port 8000
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sqlai import __version__
from sqlai.api.models import ErrorResponse
from sqlai.api.routes import health, history, query, schema, uploads
from sqlai.config import get_settings
from sqlai.connectors.base import ConnectionError as ConnectorConnectionError
from sqlai.connectors.factory import create_connector_from_settings
from sqlai.errors import (
    ExecutionFailed,
    ExecutionTimeout,
    GenerationFailed,
    IntrospectionFailed,
    InvalidUploadTable,
    SQLAIError,
    ValidationRejected,
)
from sqlai.history.recorder import create_history_recorder
from sqlai.llm.factory import LLMProviderFactory
from sqlai.schema.cache import SchemaCache
from sqlai.service import SQLService
from sqlai.uploads import UploadedTables

logger = logging.getLogger(__name__)

# Global state for the service and its collaborators
app_state: dict[str, Any] = {
    "connector": None,
    "cache": None,
    "history": None,
    "llm": None,
    "service": None,
    "uploads": None,
}

ERROR_STATUS_CODES: dict[type[SQLAIError], int] = {
    ValidationRejected: status.HTTP_400_BAD_REQUEST,
    InvalidUploadTable: status.HTTP_400_BAD_REQUEST,
    ExecutionTimeout: status.HTTP_504_GATEWAY_TIMEOUT,
    GenerationFailed: status.HTTP_502_BAD_GATEWAY,
    IntrospectionFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
    ExecutionFailed: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - Target database connector
    - Schema cache
    - History recorder
    - AI provider (optional; generation is disabled without an API key)
    - SQL service and uploaded-table operations
    """
    config = get_settings()
    logger.info(f"Starting {config.app_name} API server...")

    try:
        logger.info("Initializing database connector...")
        connector = create_connector_from_settings(
            config.database,
            timeout=max(1, config.query.timeout_ms // 1000),
        )
        await connector.connect()
        app_state["connector"] = connector

        logger.info("Initializing schema cache...")
        cache = SchemaCache(
            max_size=config.schema_cache.max_size,
            ttl_seconds=config.schema_cache.ttl_seconds,
        )
        app_state["cache"] = cache

        logger.info("Initializing history recorder...")
        history_recorder = create_history_recorder(
            backend=config.history.backend,
            max_entries=config.history.max_entries,
            database_url=config.history.database_url,
        )
        await history_recorder.initialize()
        app_state["history"] = history_recorder

        logger.info("Initializing AI provider...")
        if config.llm.api_key:
            app_state["llm"] = LLMProviderFactory.create_provider(config.llm)
        else:
            logger.warning("LLM_API_KEY not set; SQL generation is disabled.")
            app_state["llm"] = None

        app_state["service"] = SQLService.from_settings(
            config,
            connector=connector,
            cache=cache,
            history=history_recorder,
            llm=app_state["llm"],
        )
        app_state["uploads"] = UploadedTables(connector, cache)

        logger.info(f"{config.app_name} API server started successfully")

        yield  # Application runs here

    finally:
        logger.info(f"Shutting down {config.app_name} API server...")

        if app_state["history"]:
            try:
                await app_state["history"].close()
                logger.info("History recorder closed")
            except Exception as e:
                logger.error(f"Error closing history recorder: {e}")

        if app_state["connector"]:
            try:
                await app_state["connector"].close()
                logger.info("Database connector closed")
            except Exception as e:
                logger.error(f"Error closing connector: {e}")

        for key in app_state:
            app_state[key] = None

        logger.info(f"{config.app_name} API server shut down complete")


# Create FastAPI app
app = FastAPI(
    title="SQL AI Engine API",
    description="Natural-language questions answered with safe, read-only SQL",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(SQLAIError)
async def sqlai_error_handler(request: Request, exc: SQLAIError) -> JSONResponse:
    """Map pipeline failures to HTTP statuses by kind."""
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed with {exc.kind}: {exc.message}",
        extra={"path": request.url.path, "kind": exc.kind, "context": exc.context},
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.kind, message=exc.message, context=exc.context
        ).model_dump(mode="json"),
    )


@app.exception_handler(ConnectorConnectionError)
async def connection_error_handler(request: Request, exc: ConnectorConnectionError) -> JSONResponse:
    """Handle database connection errors."""
    logger.error(f"Database connection error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(
            error="connection_error",
            message="Database connection failed. Please try again later.",
        ).model_dump(mode="json"),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed request bodies with 400, like unsafe SQL."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "invalid_request", "message": message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": "http_error", "message": str(exc.detail)},
        headers=exc.headers,
    )


# Include routers
app.include_router(query.router, prefix="/api", tags=["query"])
app.include_router(schema.router, prefix="/api", tags=["schema"])
app.include_router(history.router, prefix="/api", tags=["history"])
app.include_router(uploads.router, prefix="/api", tags=["uploads"])
app.include_router(health.router, prefix="/api", tags=["health"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "SQL AI Engine API",
        "version": __version__,
        "description": "Natural-language questions answered with safe, read-only SQL",
        "docs": "/docs",
    }


def _require(key: str, label: str) -> Any:
    component = app_state.get(key)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return component


def get_service() -> SQLService:
    """Get the initialized SQL service."""
    return _require("service", "SQL service")


def get_uploads() -> UploadedTables:
    """Get the initialized uploaded-table operations."""
    return _require("uploads", "Upload store")

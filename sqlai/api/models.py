"""
API Request/Response Models

Pydantic models for FastAPI endpoints.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from sqlai.history.models import HistoryEntry, HistoryStats
from sqlai.models import QueryMetadata, QueryTiming

MAX_QUESTION_LENGTH = 1000
MAX_SQL_LENGTH = 10000


class QueryRequest(BaseModel):
    """Request model for the question-to-results endpoint."""

    question: str = Field(
        ...,
        min_length=1,
        max_length=MAX_QUESTION_LENGTH,
        description="Natural-language question about the data",
    )
    explain: bool = Field(default=False, description="Ask the AI to explain the results")
    additional_context: str | None = Field(
        default=None,
        max_length=MAX_QUESTION_LENGTH,
        description="Extra guidance appended to the SQL prompt",
    )
    max_rows: int | None = Field(default=None, gt=0, description="Override the row ceiling")

    model_config = {
        "json_schema_extra": {
            "example": {
                "question": "Which five products sold the most units?",
                "explain": True,
            }
        }
    }


class GenerateRequest(BaseModel):
    """Request model for SQL generation without execution."""

    question: str = Field(..., min_length=1, max_length=MAX_QUESTION_LENGTH)
    additional_context: str | None = Field(default=None, max_length=MAX_QUESTION_LENGTH)


class SQLRequest(BaseModel):
    """Request model for endpoints that take caller-supplied SQL."""

    sql: str = Field(..., min_length=1, max_length=MAX_SQL_LENGTH, description="SQL statement")


class CacheClearRequest(BaseModel):
    key: str | None = Field(default=None, description="Cache key; omit to clear everything")


class QueryResponse(BaseModel):
    success: bool = True
    question: str
    sql: str
    results: list[dict[str, Any]]
    row_count: int
    explanation: str | None = None
    timing: QueryTiming
    metadata: QueryMetadata


class GenerateResponse(BaseModel):
    success: bool = True
    question: str
    sql: str
    generation_time_ms: float


class ExecuteResponse(BaseModel):
    success: bool = True
    sql: str
    results: list[dict[str, Any]]
    row_count: int
    execution_time_ms: float
    limit_applied: bool


class ExplainResponse(BaseModel):
    success: bool = True
    sql: str
    explain_plan: list[dict[str, Any]]


class SchemaResponse(BaseModel):
    success: bool = True
    schema_: dict[str, Any] = Field(..., alias="schema", serialization_alias="schema")
    table_count: int

    model_config = {"populate_by_name": True}


class HistoryResponse(BaseModel):
    success: bool = True
    history: list[HistoryEntry]
    stats: HistoryStats


class CacheStatsResponse(BaseModel):
    success: bool = True
    cache: dict[str, Any]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UploadsResponse(BaseModel):
    success: bool = True
    tables: list[str]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""

    success: bool = True
    status: Literal["healthy", "degraded"]
    version: str
    timestamp: datetime
    database: dict[str, Any] = Field(..., description="Connector health report")


class ErrorResponse(BaseModel):
    """Body of every structured failure."""

    success: bool = False
    error: str = Field(..., description="Failure kind, e.g. validation_rejected")
    message: str
    context: dict[str, Any] = Field(default_factory=dict)

"""
Pipeline Result Models

Pydantic models returned by the service layer. The API serializes them as-is
and the CLI renders them, so both surfaces report the same shapes.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GeneratedQuery(BaseModel):
    """A certified statement produced from a question."""

    question: str = Field(..., description="Original natural-language question")
    raw_output: str = Field(..., description="Model output before sanitizing")
    sql: str = Field(..., description="Clean single SELECT/WITH statement")
    is_safe: bool = Field(default=True, description="Safety verdict of the sanitizer")
    generation_time_ms: float = Field(..., ge=0, description="Prompt build plus model call")
    schema_used: dict[str, list[str]] = Field(
        default_factory=dict, description="Table name to column names given to the model"
    )

    model_config = ConfigDict(frozen=True)


class ExecutionResult(BaseModel):
    """Rows returned by one executed statement."""

    sql: str = Field(..., description="Statement as sent to the database")
    results: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(..., ge=0)
    execution_time_ms: float = Field(..., ge=0)
    limit_applied: bool = Field(..., description="Whether the row ceiling was injected")


class QueryTiming(BaseModel):
    """Phase timings of a question-to-results run, in milliseconds."""

    generation_ms: float
    execution_ms: float
    total_ms: float


class QueryMetadata(BaseModel):
    request_id: str
    limit_applied: bool
    schema_tables_used: list[str] = Field(default_factory=list)


class QueryResult(BaseModel):
    """End-to-end answer to a question."""

    question: str
    sql: str
    results: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(..., ge=0)
    explanation: str | None = None
    timing: QueryTiming
    metadata: QueryMetadata

"""
Query Routes

Question-to-results, generation-only, caller-supplied execution and explain
plan endpoints.
"""

import logging
import uuid

from fastapi import APIRouter

from sqlai.api.models import (
    ExecuteResponse,
    ExplainResponse,
    GenerateRequest,
    GenerateResponse,
    QueryRequest,
    QueryResponse,
    SQLRequest,
)
from sqlai.service import SQLService

logger = logging.getLogger(__name__)

router = APIRouter()


def _service() -> SQLService:
    from sqlai.api.main import get_service

    return get_service()


@router.post("/query", response_model=QueryResponse)
async def query(request: QueryRequest) -> QueryResponse:
    """
    Generate SQL for a question, execute it and optionally explain the rows.

    Raises:
        ValidationRejected (400), GenerationFailed (502), ExecutionTimeout (504),
        ExecutionFailed (422), IntrospectionFailed (503)
    """
    request_id = str(uuid.uuid4())
    logger.info(
        f"Processing query request: {request.question[:100]}",
        extra={"request_id": request_id},
    )
    result = await _service().query_from_question(
        request.question,
        additional_context=request.additional_context,
        explain=request.explain,
        request_id=request_id,
        max_rows=request.max_rows,
    )
    return QueryResponse(**result.model_dump())


@router.post("/generate", response_model=GenerateResponse)
async def generate(request: GenerateRequest) -> GenerateResponse:
    """Generate SQL without executing it."""
    generated = await _service().generate(
        request.question,
        additional_context=request.additional_context,
    )
    return GenerateResponse(
        question=generated.question,
        sql=generated.sql,
        generation_time_ms=generated.generation_time_ms,
    )


@router.post("/execute", response_model=ExecuteResponse)
async def execute(request: SQLRequest) -> ExecuteResponse:
    """Validate and execute caller-supplied SQL."""
    result = await _service().execute(request.sql)
    return ExecuteResponse(
        sql=result.sql,
        results=result.results,
        row_count=result.row_count,
        execution_time_ms=result.execution_time_ms,
        limit_applied=result.limit_applied,
    )


@router.post("/explain", response_model=ExplainResponse)
async def explain(request: SQLRequest) -> ExplainResponse:
    """Backend-native explain plan of a validated statement."""
    plan = await _service().explain_plan(request.sql)
    return ExplainResponse(sql=request.sql, explain_plan=plan)

"""
SQL Service

Facade over the question-to-SQL pipeline:

    question -> schema (cache, introspection on miss) -> prompt -> AI provider
             -> sanitizer -> executor -> history -> caller

The cache, history recorder, connector and provider are constructed by the
caller and injected, so the API, the CLI and tests each wire their own.
"""

import logging
import time
import uuid
from typing import Any

from sqlai.config import Settings
from sqlai.connectors.base import BaseConnector, ConnectorError
from sqlai.errors import GenerationFailed, SQLAIError
from sqlai.execution.executor import QueryExecutor
from sqlai.history.models import HistoryEntry
from sqlai.history.recorder import HistoryRecorder
from sqlai.llm.base import BaseLLMProvider, LLMProviderError
from sqlai.llm.retry import RetryPolicy, call_with_retry
from sqlai.models import ExecutionResult, GeneratedQuery, QueryMetadata, QueryResult, QueryTiming
from sqlai.prompts.builder import (
    build_explain_prompt,
    build_generation_request,
    build_improvement_prompt,
    build_response_prompt,
    build_results_explanation_prompt,
    build_sql_prompt,
)
from sqlai.schema.cache import SchemaCache
from sqlai.schema.introspector import load_schema, schema_cache_key
from sqlai.schema.models import Schema
from sqlai.validation.sanitizer import sanitize

logger = logging.getLogger(__name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


class SQLService:
    """
    Generate, certify and execute SQL for natural-language questions.

    Args:
        connector: Connected database connector
        cache: Schema cache shared by every request
        history: History recorder
        llm: Completion provider; None disables generation
        retry_policy: Retry policy for provider calls
        max_rows: Row ceiling for statements without LIMIT
        timeout_ms: Execution deadline
        temperature: Sampling temperature for generation
        max_tokens: Token budget for SQL generation
        explain_max_tokens: Token budget for explanations
        llm_timeout: Per-call provider timeout in seconds
    """

    def __init__(
        self,
        connector: BaseConnector,
        cache: SchemaCache,
        history: HistoryRecorder,
        llm: BaseLLMProvider | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        max_rows: int = 1000,
        timeout_ms: int = 30000,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        explain_max_tokens: int = 1000,
        llm_timeout: float = 30,
    ) -> None:
        self.connector = connector
        self.cache = cache
        self.history = history
        self.llm = llm
        self.retry_policy = retry_policy or RetryPolicy()
        self.executor = QueryExecutor(connector, max_rows=max_rows, timeout_ms=timeout_ms)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.explain_max_tokens = explain_max_tokens
        self.llm_timeout = llm_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        connector: BaseConnector,
        cache: SchemaCache,
        history: HistoryRecorder,
        llm: BaseLLMProvider | None,
    ) -> "SQLService":
        return cls(
            connector=connector,
            cache=cache,
            history=history,
            llm=llm,
            retry_policy=RetryPolicy.from_settings(settings.llm),
            max_rows=settings.query.max_result_rows,
            timeout_ms=settings.query.timeout_ms,
            temperature=settings.llm.temperature,
            max_tokens=settings.llm.max_tokens,
            explain_max_tokens=settings.llm.explain_max_tokens,
            llm_timeout=settings.llm.timeout,
        )

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def get_schema(self, force_refresh: bool = False) -> Schema:
        """Schema of the connected database, served from cache when live."""
        return await load_schema(self.connector, self.cache, force_refresh=force_refresh)

    def invalidate_schema(self) -> bool:
        """Drop the cached schema of the connected database."""
        return self.cache.invalidate(schema_cache_key(self.connector))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def generate(
        self,
        question: str,
        *,
        additional_context: str | None = None,
    ) -> GeneratedQuery:
        """
        Produce a certified statement for a question.

        Raises:
            IntrospectionFailed: If the schema cannot be read
            GenerationFailed: If the provider fails or returns nothing
            ValidationRejected: If the output is not a safe statement
        """
        start_time = time.perf_counter()
        logger.info(f'Generating SQL for question: "{question[:200]}"')

        schema = await self.get_schema()
        system_prompt = build_sql_prompt(schema, additional_context=additional_context)
        raw_output = await self._complete(
            build_generation_request(system_prompt, question),
            max_tokens=self.max_tokens,
        )
        sql = sanitize(raw_output)

        generation_time_ms = _elapsed_ms(start_time)
        logger.info(
            f"SQL generated in {generation_time_ms:.0f}ms: {sql[:100]}",
            extra={"generation_time_ms": generation_time_ms},
        )
        return GeneratedQuery(
            question=question,
            raw_output=raw_output,
            sql=sql,
            generation_time_ms=generation_time_ms,
            schema_used=schema.simplified(),
        )

    async def execute(
        self,
        sql: str,
        *,
        max_rows: int | None = None,
        timeout_ms: int | None = None,
    ) -> ExecutionResult:
        """
        Validate and run a statement.

        Raises:
            ValidationRejected: If the statement fails the sanitizer
            ExecutionTimeout: If the deadline expires
            ExecutionFailed: If the database rejects the statement
        """
        return await self.executor.execute(sql, max_rows=max_rows, timeout_ms=timeout_ms)

    async def query_from_question(
        self,
        question: str,
        *,
        additional_context: str | None = None,
        explain: bool = False,
        request_id: str | None = None,
        max_rows: int | None = None,
        timeout_ms: int | None = None,
    ) -> QueryResult:
        """Generate, execute and optionally explain; every attempt is recorded."""
        request_id = request_id or uuid.uuid4().hex
        start_time = time.perf_counter()
        generation: GeneratedQuery | None = None

        try:
            generation = await self.generate(question, additional_context=additional_context)
            execution = await self.execute(
                generation.sql, max_rows=max_rows, timeout_ms=timeout_ms
            )
        except (SQLAIError, ConnectorError) as e:
            await self._record(
                HistoryEntry(
                    request_id=request_id,
                    question=question,
                    sql=generation.sql if generation else None,
                    success=False,
                    generation_time_ms=generation.generation_time_ms if generation else None,
                    total_time_ms=_elapsed_ms(start_time),
                    error=str(e),
                )
            )
            raise

        explanation = None
        if explain and execution.results:
            explanation = await self._try_explain_results(
                question, generation.sql, execution.results
            )

        total_time_ms = _elapsed_ms(start_time)
        await self._record(
            HistoryEntry(
                request_id=request_id,
                question=question,
                sql=generation.sql,
                success=True,
                row_count=execution.row_count,
                generation_time_ms=generation.generation_time_ms,
                execution_time_ms=execution.execution_time_ms,
                total_time_ms=total_time_ms,
            )
        )

        return QueryResult(
            question=question,
            sql=generation.sql,
            results=execution.results,
            row_count=execution.row_count,
            explanation=explanation,
            timing=QueryTiming(
                generation_ms=generation.generation_time_ms,
                execution_ms=execution.execution_time_ms,
                total_ms=total_time_ms,
            ),
            metadata=QueryMetadata(
                request_id=request_id,
                limit_applied=execution.limit_applied,
                schema_tables_used=list(generation.schema_used),
            ),
        )

    async def explain_plan(self, sql: str) -> list[dict[str, Any]]:
        """Backend-native plan for a validated statement."""
        return await self.executor.explain_plan(sql)

    # ------------------------------------------------------------------
    # Auxiliary prompts
    # ------------------------------------------------------------------

    async def explain_results(self, question: str, sql: str, results: list[dict[str, Any]]) -> str:
        """Analyst-style explanation of the first rows of a result set."""
        prompt = build_results_explanation_prompt(question, sql, results)
        return await self._complete(prompt, max_tokens=self.explain_max_tokens)

    async def explain_query(self, sql: str) -> str:
        """Plain-language walkthrough of a statement."""
        return await self._complete(build_explain_prompt(sql), max_tokens=self.explain_max_tokens)

    async def suggest_improvements(self, sql: str) -> str:
        schema = await self.get_schema()
        prompt = build_improvement_prompt(sql, schema)
        return await self._complete(prompt, max_tokens=self.explain_max_tokens)

    async def answer_from_results(self, question: str, results: list[dict[str, Any]]) -> str:
        """Natural-language answer to a question from its result rows."""
        prompt = build_response_prompt(question, results)
        return await self._complete(prompt, max_tokens=self.explain_max_tokens)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _complete(self, prompt: str, *, max_tokens: int) -> str:
        if self.llm is None:
            raise GenerationFailed("AI provider is not configured. Set LLM_API_KEY.")
        llm = self.llm
        try:
            return await call_with_retry(
                lambda: llm.complete(
                    prompt,
                    max_tokens=max_tokens,
                    temperature=self.temperature,
                    timeout=self.llm_timeout,
                ),
                self.retry_policy,
            )
        except LLMProviderError as e:
            logger.error(f"AI provider call failed: {e}")
            raise GenerationFailed(
                f"AI generation failed: {e}",
                context={"provider": llm.provider_name, "status_code": e.status_code},
            ) from e

    async def _try_explain_results(
        self,
        question: str,
        sql: str,
        results: list[dict[str, Any]],
    ) -> str | None:
        try:
            return await self.explain_results(question, sql, results)
        except GenerationFailed as e:
            logger.warning(f"Failed to generate explanation: {e}")
            return None

    async def _record(self, entry: HistoryEntry) -> None:
        # History must never fail a request
        try:
            await self.history.record(entry)
        except Exception:
            logger.exception(
                "Failed to record query history",
                extra={"request_id": entry.request_id},
            )

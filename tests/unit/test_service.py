"""
Unit tests for SQLService.

The pipeline runs end to end against a real SQLite database with a scripted
AI provider standing in for the model.
"""

from unittest.mock import AsyncMock

import pytest

from sqlai.connectors.sqlite import SQLiteConnector
from sqlai.errors import ExecutionFailed, GenerationFailed, ValidationRejected
from sqlai.history.models import HistoryFilter
from sqlai.history.recorder import InMemoryHistoryRecorder
from sqlai.llm.base import LLMProviderError
from sqlai.llm.retry import RetryPolicy
from sqlai.schema.cache import SchemaCache
from sqlai.service import SQLService


async def _no_sleep(seconds):
    return None


@pytest.fixture
async def connector(sqlite_db):
    connector = SQLiteConnector(sqlite_db)
    await connector.connect()
    yield connector
    await connector.close()


@pytest.fixture
def history():
    return InMemoryHistoryRecorder()


@pytest.fixture
def service(connector, history, mock_llm_provider):
    return SQLService(
        connector=connector,
        cache=SchemaCache(),
        history=history,
        llm=mock_llm_provider,
        retry_policy=RetryPolicy(max_attempts=2, initial_delay=0.01, max_delay=0.01, jitter=0),
        max_rows=100,
    )


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generates_certified_sql(self, service, mock_llm_provider):
        mock_llm_provider.set_response("```sql\nSELECT COUNT(*) AS n FROM Orders\n```")

        generated = await service.generate("How many orders are there?")

        assert generated.sql == "SELECT COUNT(*) AS n FROM Orders;"
        assert generated.raw_output.startswith("```sql")
        assert generated.is_safe is True
        assert set(generated.schema_used) == {"Customers", "Orders", "Products"}
        assert generated.schema_used["Orders"] == ["OrderID", "CustomerID", "ProductID", "Quantity"]

    @pytest.mark.asyncio
    async def test_prompt_carries_schema_question_and_context(self, service, mock_llm_provider):
        mock_llm_provider.set_response("SELECT 1;")

        await service.generate("Top customers?", additional_context="Revenue means Quantity")

        prompt = mock_llm_provider.last_prompt
        assert "- Orders: OrderID, CustomerID, ProductID, Quantity" in prompt
        assert "Revenue means Quantity" in prompt
        assert prompt.endswith("User Question: Top customers?")

    @pytest.mark.asyncio
    async def test_schema_is_cached_between_calls(self, service, mock_llm_provider):
        mock_llm_provider.set_response("SELECT 1;", "SELECT 2;")

        await service.generate("one")
        await service.generate("two")

        stats = service.cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    @pytest.mark.asyncio
    async def test_unsafe_output_rejected(self, service, mock_llm_provider):
        mock_llm_provider.set_response("DELETE FROM Orders;")

        with pytest.raises(ValidationRejected):
            await service.generate("Remove all orders")

    @pytest.mark.asyncio
    async def test_provider_failure_retried_then_reported(self, service, mock_llm_provider):
        mock_llm_provider.set_response(
            LLMProviderError("busy", status_code=503),
            LLMProviderError("busy", status_code=503),
        )

        with pytest.raises(GenerationFailed) as exc_info:
            await service.generate("How many orders?")

        assert mock_llm_provider.call_count == 2
        assert exc_info.value.context["status_code"] == 503

    @pytest.mark.asyncio
    async def test_empty_reply_not_retried(self, service, mock_llm_provider):
        mock_llm_provider.set_response("   ")

        with pytest.raises(GenerationFailed):
            await service.generate("How many orders?")

        assert mock_llm_provider.call_count == 1

    @pytest.mark.asyncio
    async def test_without_provider(self, connector, history):
        service = SQLService(connector=connector, cache=SchemaCache(), history=history)

        with pytest.raises(GenerationFailed, match="not configured"):
            await service.generate("How many orders?")


class TestExecute:
    @pytest.mark.asyncio
    async def test_caller_sql_is_limited(self, service):
        result = await service.execute("SELECT Name FROM Customers ORDER BY CustomerID")

        assert result.limit_applied is True
        assert result.sql.endswith("LIMIT 100;")
        assert [row["Name"] for row in result.results] == ["Ana", "Ben", "Chen"]

    @pytest.mark.asyncio
    async def test_caller_sql_is_validated(self, service):
        with pytest.raises(ValidationRejected):
            await service.execute("DROP TABLE Orders")

    @pytest.mark.asyncio
    async def test_explain_plan(self, service):
        plan = await service.explain_plan("SELECT * FROM Orders WHERE OrderID = 1")

        assert plan
        assert "detail" in plan[0]


class TestQueryFromQuestion:
    @pytest.mark.asyncio
    async def test_success_is_recorded(self, service, mock_llm_provider, history):
        mock_llm_provider.set_response("SELECT COUNT(*) AS n FROM Orders;")

        result = await service.query_from_question("How many orders?", request_id="req-1")

        assert result.results == [{"n": 4}]
        assert result.row_count == 1
        assert result.explanation is None
        assert result.metadata.request_id == "req-1"
        assert result.metadata.limit_applied is True
        assert result.timing.total_ms >= result.timing.generation_ms

        entries = await history.query()
        assert len(entries) == 1
        assert entries[0].success is True
        assert entries[0].row_count == 1
        assert entries[0].sql == "SELECT COUNT(*) AS n FROM Orders;"

    @pytest.mark.asyncio
    async def test_explanation_requested(self, service, mock_llm_provider):
        mock_llm_provider.set_response(
            "SELECT Name FROM Customers WHERE Country = 'UK';",
            "Only Ben is based in the UK.",
        )

        result = await service.query_from_question("Who is in the UK?", explain=True)

        assert result.explanation == "Only Ben is based in the UK."
        assert "Ben" in mock_llm_provider.last_prompt

    @pytest.mark.asyncio
    async def test_explanation_failure_is_not_fatal(self, service, mock_llm_provider):
        mock_llm_provider.set_response(
            "SELECT Name FROM Customers;",
            LLMProviderError("bad request", status_code=400),
        )

        result = await service.query_from_question("List customers", explain=True)

        assert result.row_count == 3
        assert result.explanation is None

    @pytest.mark.asyncio
    async def test_no_explanation_for_empty_results(self, service, mock_llm_provider):
        mock_llm_provider.set_response("SELECT Name FROM Customers WHERE Country = 'Peru';")

        result = await service.query_from_question("Who is in Peru?", explain=True)

        assert result.results == []
        assert mock_llm_provider.call_count == 1

    @pytest.mark.asyncio
    async def test_rejection_is_recorded_as_failure(self, service, mock_llm_provider, history):
        mock_llm_provider.set_response("DROP TABLE Orders;")

        with pytest.raises(ValidationRejected):
            await service.query_from_question("Drop orders")

        failed = await history.query(HistoryFilter(success=False))
        assert len(failed) == 1
        assert failed[0].sql is None
        assert failed[0].error == "no statement found"

    @pytest.mark.asyncio
    async def test_execution_failure_keeps_generated_sql(self, service, mock_llm_provider, history):
        mock_llm_provider.set_response("SELECT Missing FROM Orders;")

        with pytest.raises(ExecutionFailed):
            await service.query_from_question("Missing column")

        entry = (await history.query())[0]
        assert entry.success is False
        assert entry.sql == "SELECT Missing FROM Orders;"
        assert entry.generation_time_ms is not None

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_request(self, service, mock_llm_provider):
        service.history = AsyncMock()
        service.history.record = AsyncMock(side_effect=RuntimeError("history down"))
        mock_llm_provider.set_response("SELECT 1 AS one;")

        result = await service.query_from_question("One?")

        assert result.results == [{"one": 1}]


class TestAuxiliaryPrompts:
    @pytest.mark.asyncio
    async def test_explain_query(self, service, mock_llm_provider):
        mock_llm_provider.set_response("Counts every order.")

        text = await service.explain_query("SELECT COUNT(*) FROM Orders;")

        assert text == "Counts every order."
        assert "SELECT COUNT(*) FROM Orders;" in mock_llm_provider.last_prompt

    @pytest.mark.asyncio
    async def test_suggest_improvements_includes_schema(self, service, mock_llm_provider):
        mock_llm_provider.set_response("Add an index on CustomerID.")

        await service.suggest_improvements("SELECT * FROM Orders WHERE CustomerID = 1;")

        assert "Orders" in mock_llm_provider.last_prompt
        assert "CustomerID" in mock_llm_provider.last_prompt

    @pytest.mark.asyncio
    async def test_answer_from_results(self, service, mock_llm_provider):
        mock_llm_provider.set_response("There are 4 orders.")

        answer = await service.answer_from_results("How many orders?", [{"n": 4}])

        assert answer == "There are 4 orders."

    @pytest.mark.asyncio
    async def test_invalidate_schema(self, service, mock_llm_provider):
        mock_llm_provider.set_response("SELECT 1;")
        await service.generate("warm the cache")

        assert service.invalidate_schema() is True
        assert service.invalidate_schema() is False

"""Unit tests for the prompt builders."""

from datetime import date
from decimal import Decimal

from sqlai.prompts.builder import (
    RESULT_SAMPLE_SIZE,
    build_explain_prompt,
    build_generation_request,
    build_improvement_prompt,
    build_response_prompt,
    build_results_explanation_prompt,
    build_sql_prompt,
)
from sqlai.schema.models import Schema


class TestSQLPrompt:
    def test_contains_rules_and_schema(self, sample_schema):
        prompt = build_sql_prompt(sample_schema)

        assert "CRITICAL RULES:" in prompt
        assert "Use ONLY SELECT or WITH statements" in prompt
        assert "DATABASE SCHEMA:\n- Customers: CustomerID, Name, Country" in prompt
        assert "  └─ CustomerID → Customers.CustomerID" in prompt
        assert prompt.rstrip().endswith("Remember: Output ONLY the raw SQL query, nothing else.")

    def test_mentions_upload_prefix(self, sample_schema):
        prompt = build_sql_prompt(sample_schema)

        assert 'Tables starting with "upload_" are USER-UPLOADED files' in prompt

    def test_is_deterministic(self, sample_schema):
        assert build_sql_prompt(sample_schema) == build_sql_prompt(sample_schema)

    def test_additional_context(self, sample_schema):
        without = build_sql_prompt(sample_schema)
        with_context = build_sql_prompt(sample_schema, additional_context="Prices are in EUR.")

        assert "ADDITIONAL CONTEXT" not in without
        assert "ADDITIONAL CONTEXT" in with_context
        assert "Prices are in EUR." in with_context

    def test_blank_context_ignored(self, sample_schema):
        assert build_sql_prompt(sample_schema, additional_context="   ") == build_sql_prompt(
            sample_schema
        )

    def test_empty_schema(self):
        prompt = build_sql_prompt(Schema())
        assert "DATABASE SCHEMA:" in prompt


def test_generation_request():
    assert build_generation_request("RULES", "How many orders?") == (
        "RULES\n\nUser Question: How many orders?"
    )


def test_explain_prompt():
    prompt = build_explain_prompt("SELECT * FROM Orders;")

    assert "non-technical" in prompt
    assert "SELECT * FROM Orders;" in prompt


def test_improvement_prompt_includes_schema(sample_schema):
    prompt = build_improvement_prompt("SELECT * FROM Orders;", sample_schema)

    assert "- Orders: OrderID, CustomerID, ProductID, Quantity" in prompt
    assert "SELECT * FROM Orders;" in prompt


def test_results_explanation_samples_first_rows():
    rows = [{"n": i} for i in range(25)]

    prompt = build_results_explanation_prompt("Count?", "SELECT n FROM t;", rows)

    assert f"showing first {RESULT_SAMPLE_SIZE} of 25 rows" in prompt
    assert '"n": 9' in prompt
    assert '"n": 10' not in prompt
    assert "Key Findings" in prompt


def test_response_prompt_serializes_driver_types():
    rows = [{"total": Decimal("12.50"), "day": date(2024, 3, 1)}]

    prompt = build_response_prompt("Revenue on March 1st?", rows)

    assert '"total": "12.50"' in prompt
    assert '"day": "2024-03-01"' in prompt
    assert "showing first 1 of 1 rows" in prompt

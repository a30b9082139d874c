"""
Prompt builders.

Every builder is a pure function of its inputs: the same schema and options
always produce the same text, which keeps generation reproducible and the
prompts easy to assert on in tests.
"""

from __future__ import annotations

import json
from typing import Any

from sqlai.prompts.loader import PromptLoader
from sqlai.schema.formatter import format_schema_for_prompt
from sqlai.schema.models import Schema

# Reserved prefix of tables created from user-uploaded files
UPLOAD_TABLE_PREFIX = "upload_"

# Rows shown to the model when it explains or answers from results
RESULT_SAMPLE_SIZE = 10

_loader = PromptLoader()


def build_sql_prompt(schema: Schema, additional_context: str | None = None) -> str:
    """Instruction document for SQL generation: rule set plus schema listing."""
    return _loader.render(
        "sql_generator.md",
        schema_text=format_schema_for_prompt(schema),
        additional_context=(additional_context or "").strip(),
        upload_prefix=UPLOAD_TABLE_PREFIX,
    )


def build_generation_request(system_prompt: str, question: str) -> str:
    """Single-message request sent to the completion endpoint."""
    return f"{system_prompt}\n\nUser Question: {question}"


def build_explain_prompt(sql: str) -> str:
    return _loader.render("explain_query.md", sql=sql)


def build_improvement_prompt(sql: str, schema: Schema) -> str:
    return _loader.render(
        "improve_query.md",
        sql=sql,
        schema_text=format_schema_for_prompt(schema),
    )


def build_response_prompt(question: str, results: list[dict[str, Any]]) -> str:
    sample = results[:RESULT_SAMPLE_SIZE]
    return _loader.render(
        "answer_response.md",
        question=question,
        sample_json=_dump_rows(sample),
        sample_size=len(sample),
        total_rows=len(results),
    )


def build_results_explanation_prompt(
    question: str,
    sql: str,
    results: list[dict[str, Any]],
) -> str:
    """Analyst-style explanation request over the first rows of a result set."""
    sample = results[:RESULT_SAMPLE_SIZE]
    return _loader.render(
        "explain_results.md",
        question=question,
        sql=sql,
        sample_json=_dump_rows(sample),
        sample_size=len(sample),
        total_rows=len(results),
    )


def _dump_rows(rows: list[dict[str, Any]]) -> str:
    # default=str covers Decimal, date and datetime values from the drivers
    return json.dumps(rows, indent=2, default=str)

"""Prompt templates and builders for the AI collaborator."""

from sqlai.prompts.builder import (
    RESULT_SAMPLE_SIZE,
    UPLOAD_TABLE_PREFIX,
    build_explain_prompt,
    build_generation_request,
    build_improvement_prompt,
    build_response_prompt,
    build_results_explanation_prompt,
    build_sql_prompt,
)
from sqlai.prompts.loader import PromptLoader

__all__ = [
    "PromptLoader",
    "UPLOAD_TABLE_PREFIX",
    "RESULT_SAMPLE_SIZE",
    "build_sql_prompt",
    "build_generation_request",
    "build_explain_prompt",
    "build_improvement_prompt",
    "build_response_prompt",
    "build_results_explanation_prompt",
]

"""
LLM Provider Module

Completion providers behind one interface, plus the retry policy applied
to every call.

Usage:
    from sqlai.llm import LLMProviderFactory, RetryPolicy, call_with_retry
    from sqlai.config import get_settings

    settings = get_settings()
    provider = LLMProviderFactory.create_provider(settings.llm)
    policy = RetryPolicy.from_settings(settings.llm)

    text = await call_with_retry(lambda: provider.complete("Hello!"), policy)
"""

from sqlai.llm.anthropic import AnthropicProvider
from sqlai.llm.base import (
    BaseLLMProvider,
    EmptyCompletionError,
    LLMConnectionError,
    LLMProviderError,
    LLMTimeoutError,
)
from sqlai.llm.factory import LLMProviderFactory
from sqlai.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage
from sqlai.llm.openai import OpenAIProvider
from sqlai.llm.retry import RETRYABLE_STATUS_CODES, RetryPolicy, call_with_retry, is_retryable

__all__ = [
    "BaseLLMProvider",
    "LLMProviderError",
    "LLMTimeoutError",
    "LLMConnectionError",
    "EmptyCompletionError",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "LLMProviderFactory",
    "OpenAIProvider",
    "AnthropicProvider",
    "RetryPolicy",
    "RETRYABLE_STATUS_CODES",
    "call_with_retry",
    "is_retryable",
]

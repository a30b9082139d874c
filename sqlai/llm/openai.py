"""
OpenAI-compatible LLM Provider

Implementation of BaseLLMProvider on the official openai SDK. Any endpoint
speaking the Chat Completions API works through ``base_url``; the default
configuration points at Groq.
"""

import logging

import openai
from openai import AsyncOpenAI

from sqlai.llm.base import (
    BaseLLMProvider,
    LLMConnectionError,
    LLMProviderError,
    LLMTimeoutError,
)
from sqlai.llm.models import LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI Chat Completions provider (OpenAI, Groq and compatible APIs)."""

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.3-70b-versatile",
        base_url: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="openai",
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.base_url = base_url
        # Retries are driven by RetryPolicy, not the SDK
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=float(timeout),
            max_retries=0,
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using the Chat Completions API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        messages = [{"role": msg.role, "content": msg.content} for msg in request.messages]
        try:
            response = await self.client.chat.completions.create(
                model=request.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                **request.metadata,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise LLMTimeoutError(str(e), provider=self.provider_name) from e
        except openai.APIConnectionError as e:
            logger.error(f"OpenAI API connection error: {e}")
            raise LLMConnectionError(str(e), provider=self.provider_name) from e
        except openai.APIStatusError as e:
            logger.error(f"OpenAI API error ({e.status_code}): {e}")
            raise LLMProviderError(
                str(e), status_code=e.status_code, provider=self.provider_name
            ) from e

        if not response.choices:
            raise LLMProviderError("No response from OpenAI API", provider=self.provider_name)

        usage = response.usage
        llm_response = LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
            finish_reason=self._map_finish_reason(response.choices[0].finish_reason),
            provider=self.provider_name,
            metadata={"id": response.id},
        )
        self._log_response(llm_response)
        return llm_response

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map OpenAI finish reason to our standard format."""
        if reason in ("length", "content_filter"):
            return reason
        return "stop"

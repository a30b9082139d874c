"""
Anthropic LLM Provider

Implementation of BaseLLMProvider for Anthropic's Claude models.
"""

import logging

import anthropic
from anthropic import AsyncAnthropic

from sqlai.llm.base import (
    BaseLLMProvider,
    LLMConnectionError,
    LLMProviderError,
    LLMTimeoutError,
)
from sqlai.llm.models import LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """Anthropic (Claude) provider using the anthropic SDK."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        temperature: float = 0.1,
        max_tokens: int = 2000,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="anthropic",
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout), max_retries=0)

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using the Messages API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        # Anthropic takes the system message separately
        system_message = None
        messages = []
        for msg in request.messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                messages.append({"role": msg.role, "content": msg.content})

        kwargs = {"system": system_message} if system_message else {}
        try:
            response = await self.client.messages.create(
                model=request.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                messages=messages,
                **kwargs,
            )
        except anthropic.APITimeoutError as e:
            logger.error(f"Anthropic API timeout: {e}")
            raise LLMTimeoutError(str(e), provider=self.provider_name) from e
        except anthropic.APIConnectionError as e:
            logger.error(f"Anthropic API connection error: {e}")
            raise LLMConnectionError(str(e), provider=self.provider_name) from e
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error ({e.status_code}): {e}")
            raise LLMProviderError(
                str(e), status_code=e.status_code, provider=self.provider_name
            ) from e

        text = "".join(block.text for block in response.content if block.type == "text")
        llm_response = LLMResponse(
            content=text,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
            finish_reason=self._map_finish_reason(response.stop_reason),
            provider=self.provider_name,
            metadata={"id": response.id},
        )
        self._log_response(llm_response)
        return llm_response

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map Anthropic stop reason to standard format."""
        if reason == "max_tokens":
            return "length"
        return "stop"

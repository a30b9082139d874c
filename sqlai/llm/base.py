"""
Base LLM Provider

Abstract base class defining the interface for completion providers, and
the provider-neutral errors they raise. Providers translate SDK exceptions
into these errors so retry decisions never depend on a specific SDK.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from sqlai.llm.models import LLMMessage, LLMRequest, LLMResponse

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================


class LLMProviderError(Exception):
    """
    A completion call failed.

    Attributes:
        status_code: HTTP status reported by the provider, if any
        provider: Provider that raised the error
    """

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None):
        self.status_code = status_code
        self.provider = provider
        super().__init__(message)


class LLMTimeoutError(LLMProviderError):
    """The provider did not answer before the request timeout."""


class LLMConnectionError(LLMProviderError):
    """The provider could not be reached."""


class EmptyCompletionError(LLMProviderError):
    """The provider answered with no usable content."""


# ============================================================================
# Base Provider
# ============================================================================


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Attributes:
        provider_name: Unique identifier for this provider
        model: Default model
        temperature: Default sampling temperature
        max_tokens: Default maximum tokens to generate
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        provider_name: str,
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        timeout: int = 30,
    ):
        self.provider_name = provider_name
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

        logger.info(
            f"Initialized {provider_name} provider with model: {model}",
            extra={
                "provider": provider_name,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Raises:
            LLMTimeoutError: On request timeout
            LLMConnectionError: When the provider is unreachable
            LLMProviderError: On any other provider failure
        """
        pass  # pragma: no cover - abstract method

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Send a single user message and return the stripped reply text.

        Raises:
            LLMTimeoutError: If no answer arrives within ``timeout`` seconds
            EmptyCompletionError: If the reply is empty
            LLMProviderError: On provider failures
        """
        request = LLMRequest(
            messages=[LLMMessage(role="user", content=prompt)],
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        deadline = timeout or self.timeout
        try:
            response = await asyncio.wait_for(self.generate(request), timeout=deadline)
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(
                f"{self.provider_name} did not respond within {deadline}s",
                provider=self.provider_name,
            ) from e

        content = response.content.strip()
        if not content:
            raise EmptyCompletionError(
                f"Empty response from {self.provider_name}",
                provider=self.provider_name,
            )
        return content

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        """Fill unset request parameters from provider defaults."""
        return request.model_copy(
            update={
                "model": request.model or self.model,
                "temperature": (
                    self.temperature if request.temperature is None else request.temperature
                ),
                "max_tokens": request.max_tokens or self.max_tokens,
            }
        )

    def _log_request(self, request: LLMRequest) -> None:
        logger.debug(
            f"{self.provider_name} request",
            extra={
                "provider": self.provider_name,
                "model": request.model,
                "message_count": len(request.messages),
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        logger.debug(
            f"{self.provider_name} response",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
                "finish_reason": response.finish_reason,
            },
        )

"""
LLM Provider Factory

Creates the configured completion provider.
"""

import logging

from sqlai.config import LLMSettings
from sqlai.llm.anthropic import AnthropicProvider
from sqlai.llm.base import BaseLLMProvider
from sqlai.llm.openai import OpenAIProvider

logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    PROVIDERS = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
    }

    @staticmethod
    def create_provider(config: LLMSettings) -> BaseLLMProvider:
        """
        Create the provider named by ``config.provider``.

        Raises:
            ValueError: If the provider is unknown or no API key is configured
        """
        provider_type = config.provider
        if provider_type not in LLMProviderFactory.PROVIDERS:
            raise ValueError(
                f"Unknown provider type: {provider_type}. "
                f"Available providers: {list(LLMProviderFactory.PROVIDERS.keys())}"
            )
        if not config.api_key:
            raise ValueError(
                f"{provider_type} API key is required. Set LLM_API_KEY environment variable."
            )

        logger.info(
            f"Creating {provider_type} provider",
            extra={"provider": provider_type, "model": config.model},
        )

        if provider_type == "anthropic":
            return AnthropicProvider(
                api_key=config.api_key,
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                timeout=config.timeout,
            )
        return OpenAIProvider(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

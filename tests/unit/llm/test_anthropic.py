"""
Tests for Anthropic Provider.

Tests Anthropic provider implementation with mocked API calls.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from sqlai.llm.anthropic import AnthropicProvider
from sqlai.llm.base import LLMConnectionError, LLMProviderError, LLMTimeoutError
from sqlai.llm.models import LLMMessage, LLMRequest

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


@pytest.fixture
def provider():
    return AnthropicProvider(
        api_key="sk-ant-test-key-1234567890",
        model="claude-3-5-sonnet-20241022",
    )


def _message(text="SELECT 1;", stop_reason="end_turn"):
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    response.model = "claude-3-5-sonnet-20241022"
    response.usage.input_tokens = 12
    response.usage.output_tokens = 4
    response.stop_reason = stop_reason
    response.id = "msg_123"
    return response


class TestGenerate:
    @pytest.mark.asyncio
    async def test_system_message_sent_separately(self, provider):
        request = LLMRequest(
            messages=[
                LLMMessage(role="system", content="You write SQL."),
                LLMMessage(role="user", content="How many orders?"),
            ]
        )
        with patch.object(
            provider.client.messages,
            "create",
            new_callable=AsyncMock,
            return_value=_message(),
        ) as create:
            response = await provider.generate(request)

        kwargs = create.call_args.kwargs
        assert kwargs["system"] == "You write SQL."
        assert kwargs["messages"] == [{"role": "user", "content": "How many orders?"}]
        assert response.content == "SELECT 1;"
        assert response.usage.total_tokens == 16
        assert response.provider == "anthropic"

    @pytest.mark.asyncio
    async def test_no_system_kwarg_without_system_message(self, provider):
        request = LLMRequest(messages=[LLMMessage(role="user", content="hi")])
        with patch.object(
            provider.client.messages,
            "create",
            new_callable=AsyncMock,
            return_value=_message(),
        ) as create:
            await provider.generate(request)

        assert "system" not in create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_max_tokens_maps_to_length(self, provider):
        request = LLMRequest(messages=[LLMMessage(role="user", content="hi")])
        with patch.object(
            provider.client.messages,
            "create",
            new_callable=AsyncMock,
            return_value=_message(stop_reason="max_tokens"),
        ):
            response = await provider.generate(request)

        assert response.finish_reason == "length"


class TestErrorMapping:
    @pytest.mark.parametrize("status_code", [400, 529])
    @pytest.mark.asyncio
    async def test_status_error(self, provider, status_code):
        error = anthropic.APIStatusError(
            "failed",
            response=httpx.Response(status_code, request=_REQUEST),
            body=None,
        )
        request = LLMRequest(messages=[LLMMessage(role="user", content="hi")])
        with patch.object(
            provider.client.messages, "create", new_callable=AsyncMock, side_effect=error
        ):
            with pytest.raises(LLMProviderError) as exc_info:
                await provider.generate(request)

        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_timeout_and_connection(self, provider):
        request = LLMRequest(messages=[LLMMessage(role="user", content="hi")])
        with patch.object(
            provider.client.messages,
            "create",
            new_callable=AsyncMock,
            side_effect=anthropic.APITimeoutError(request=_REQUEST),
        ):
            with pytest.raises(LLMTimeoutError):
                await provider.generate(request)

        with patch.object(
            provider.client.messages,
            "create",
            new_callable=AsyncMock,
            side_effect=anthropic.APIConnectionError(request=_REQUEST),
        ):
            with pytest.raises(LLMConnectionError):
                await provider.generate(request)

"""Unit tests for the OpenAI embedding and completion adapters.

The SDK client is replaced with a MagicMock whose async methods are
AsyncMocks; SDK exceptions are built on real httpx request/response objects.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.providers.embedding.openai_embedding_provider import (
    OpenAIEmbeddingProvider,
    classify_openai_error,
)
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.utils.errors import ProviderError

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "gpt-4o-mini",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _status_error(cls: type, status: int, body: dict | None = None) -> openai.APIStatusError:
    response = httpx.Response(status, request=_REQUEST)
    return cls("boom", response=response, body=body)


def _embedding_client(vector: list[float] | None = None) -> MagicMock:
    client = MagicMock()
    data = [SimpleNamespace(embedding=vector)] if vector is not None else []
    client.embeddings.create = AsyncMock(
        return_value=SimpleNamespace(data=data, usage=SimpleNamespace(total_tokens=3))
    )
    return client


def _chat_client(content: str | None) -> MagicMock:
    client = MagicMock()
    choice = SimpleNamespace(message=SimpleNamespace(content=content))
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[choice],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
        )
    )
    return client


# ======================================================================
# Error classification
# ======================================================================


class TestClassifyOpenAIError:
    def test_quota_vs_rate_limit(self) -> None:
        quota = _status_error(openai.RateLimitError, 429, {"code": "insufficient_quota"})
        throttled = _status_error(openai.RateLimitError, 429, {"code": "rate_limit_exceeded"})
        assert classify_openai_error(quota) == "quota_exceeded"
        assert classify_openai_error(throttled) == "rate_limited"

    def test_auth_and_not_found(self) -> None:
        assert classify_openai_error(_status_error(openai.AuthenticationError, 401)) == (
            "invalid_api_key"
        )
        assert classify_openai_error(_status_error(openai.NotFoundError, 404)) == (
            "model_not_found"
        )

    def test_timeout_and_connection(self) -> None:
        assert classify_openai_error(openai.APITimeoutError(request=_REQUEST)) == "timeout"
        assert classify_openai_error(openai.APIConnectionError(request=_REQUEST)) == (
            "connection_error"
        )

    def test_other_errors(self) -> None:
        assert classify_openai_error(_status_error(openai.InternalServerError, 500)) == (
            "api_error"
        )


# ======================================================================
# Embedding provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    def test_name_and_availability(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(), client=MagicMock()).is_available() is True
        assert (
            OpenAIEmbeddingProvider(_settings(openai_api_key=""), client=MagicMock()).is_available()
            is False
        )
        compatible = OpenAIEmbeddingProvider(
            _settings(openai_base_url="http://localhost:1234/v1"), client=MagicMock()
        )
        assert compatible.get_provider_name() == "openai-compatible_embedding"

    @pytest.mark.asyncio
    async def test_create_embedding_passes_dimensions(self) -> None:
        client = _embedding_client([0.1, 0.2])
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        vector = await provider.create_embedding("hello", "text-embedding-3-small", 2)

        assert vector == [0.1, 0.2]
        client.embeddings.create.assert_awaited_once_with(
            input="hello", model="text-embedding-3-small", dimensions=2
        )

    @pytest.mark.asyncio
    async def test_dimensions_omitted_when_none(self) -> None:
        client = _embedding_client([0.1])
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        await provider.create_embedding("hello", "text-embedding-ada-002")

        client.embeddings.create.assert_awaited_once_with(
            input="hello", model="text-embedding-ada-002"
        )

    @pytest.mark.asyncio
    async def test_empty_data_is_invalid_response(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(), client=_embedding_client(None))
        with pytest.raises(ProviderError) as exc_info:
            await provider.create_embedding("hello", "text-embedding-3-small")
        assert exc_info.value.reason == "invalid_response"

    @pytest.mark.asyncio
    async def test_sdk_error_is_classified(self) -> None:
        client = MagicMock()
        client.embeddings.create = AsyncMock(
            side_effect=_status_error(openai.RateLimitError, 429, {"code": "insufficient_quota"})
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        with pytest.raises(ProviderError) as exc_info:
            await provider.create_embedding("hello", "text-embedding-3-small")

        assert exc_info.value.reason == "quota_exceeded"
        assert exc_info.value.provider_name == "openai_embedding"
        assert "quota" in exc_info.value.message


# ======================================================================
# LLM provider
# ======================================================================


class TestOpenAILLMProvider:
    def test_name_and_availability(self) -> None:
        provider = OpenAILLMProvider(_settings(), client=MagicMock())
        assert provider.get_provider_name() == "openai"
        assert provider.is_available() is True
        assert OpenAILLMProvider(_settings(openai_api_key=""), client=MagicMock()).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_sends_both_prompts(self) -> None:
        client = _chat_client("  Refunds take 30 days.  ")
        provider = OpenAILLMProvider(_settings(), client=client)

        answer = await provider.complete("system", "user", temperature=0.3, max_tokens=600)

        assert answer == "Refunds take 30 days."
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "user"},
        ]
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 600

    @pytest.mark.asyncio
    async def test_empty_completion_is_invalid_response(self) -> None:
        provider = OpenAILLMProvider(_settings(), client=_chat_client(""))
        with pytest.raises(ProviderError) as exc_info:
            await provider.complete("system", "user")
        assert exc_info.value.reason == "invalid_response"

    @pytest.mark.asyncio
    async def test_sdk_error_is_wrapped(self) -> None:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            side_effect=openai.APITimeoutError(request=_REQUEST)
        )
        provider = OpenAILLMProvider(_settings(), client=client)

        with pytest.raises(ProviderError) as exc_info:
            await provider.complete("system", "user")
        assert exc_info.value.reason == "timeout"

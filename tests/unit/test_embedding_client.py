"""Unit tests for EmbeddingClient -- caching, validation and batch isolation."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.rag import DocumentChunk, EmbeddingOptions
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.services.embedding_client import EmbeddingClient, validate_vector
from src.utils.errors import ProviderError, ValidationError
from tests.conftest import FakeEmbeddingProvider


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _chunk(index: int, text: str) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=f"doc-1_chunk_{index}",
        document_id="doc-1",
        chunk_index=index,
        text=text,
        original_text=text,
        start_offset=0,
        end_offset=len(text),
    )


def _mock_provider(return_value: list[float]) -> MagicMock:
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.get_provider_name.return_value = "mock-embed"
    provider.create_embedding = AsyncMock(return_value=return_value)
    return provider


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    @pytest.mark.asyncio
    async def test_repeat_within_ttl_calls_provider_once(self) -> None:
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, cache=MemoryCacheProvider(ttl=300))

        first = await client.embed("refund policy")
        second = await client.embed("refund policy")

        assert first == second
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_repeat_after_expiry_calls_provider_again(self) -> None:
        clock = _Clock()
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, cache=MemoryCacheProvider(ttl=300, timer=clock))

        await client.embed("refund policy")
        clock.now = 301.0
        await client.embed("refund policy")

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_whitespace_variants_share_a_cache_entry(self) -> None:
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, cache=MemoryCacheProvider())

        await client.embed("refund   policy\n")
        await client.embed("refund policy")

        assert provider.calls == ["refund policy"]

    @pytest.mark.asyncio
    async def test_cache_is_keyed_by_model(self) -> None:
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, cache=MemoryCacheProvider())

        await client.embed("refund policy")
        await client.embed("refund policy", EmbeddingOptions(model="custom-model"))

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_use_cache_false_bypasses_cache(self) -> None:
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, cache=MemoryCacheProvider())

        await client.embed("refund policy", EmbeddingOptions(use_cache=False))
        await client.embed("refund policy", EmbeddingOptions(use_cache=False))

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_broken_cache_falls_through_to_provider(self) -> None:
        cache = MagicMock(spec=ICacheProvider)
        cache.get = AsyncMock(side_effect=RuntimeError("cache down"))
        cache.set = AsyncMock(side_effect=RuntimeError("cache down"))
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, cache=cache)

        vector = await client.embed("refund policy")

        assert vector[0] == 1.0
        assert len(provider.calls) == 1


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_text_rejected_without_provider_call(self, text: str) -> None:
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider)

        with pytest.raises(ValidationError):
            await client.embed(text)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_dimensions_out_of_range_rejected(self) -> None:
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, model="text-embedding-3-small")

        with pytest.raises(ValidationError):
            await client.embed("refund", EmbeddingOptions(dimensions=2000))
        with pytest.raises(ValidationError):
            await client.embed("refund", EmbeddingOptions(dimensions=0))
        assert provider.calls == []

    def test_fixed_dimension_model_rejects_custom_dimensions(self) -> None:
        with pytest.raises(ValidationError):
            EmbeddingClient(
                FakeEmbeddingProvider(), model="text-embedding-ada-002", dimensions=512
            )

    @pytest.mark.asyncio
    async def test_requested_dimensions_are_passed_through(self) -> None:
        provider = _mock_provider([0.1] * 256)
        client = EmbeddingClient(provider, dimensions=256)

        vector = await client.embed("refund")

        assert len(vector) == 256
        provider.create_embedding.assert_awaited_once_with(
            "refund", model="text-embedding-3-small", dimensions=256
        )

    @pytest.mark.asyncio
    async def test_non_finite_vector_is_a_provider_error(self) -> None:
        client = EmbeddingClient(_mock_provider([0.1, float("nan")]))

        with pytest.raises(ProviderError) as exc_info:
            await client.embed("refund")
        assert exc_info.value.reason == "invalid_response"

    @pytest.mark.asyncio
    async def test_wrong_dimension_count_is_a_provider_error(self) -> None:
        client = EmbeddingClient(_mock_provider([0.1] * 10), dimensions=256)

        with pytest.raises(ProviderError):
            await client.embed("refund")

    @pytest.mark.asyncio
    async def test_invalid_vector_is_not_cached(self) -> None:
        provider = _mock_provider([])
        client = EmbeddingClient(provider, cache=MemoryCacheProvider())

        for _ in range(2):
            with pytest.raises(ProviderError):
                await client.embed("refund")
        assert provider.create_embedding.await_count == 2

    @pytest.mark.parametrize(
        "vector",
        [[], [float("inf")], ["0.1"], [True, 0.2], "abc", None],
    )
    def test_validate_vector_rejects(self, vector: object) -> None:
        with pytest.raises(ValidationError):
            validate_vector(vector)

    def test_validate_vector_accepts_ints(self) -> None:
        assert validate_vector([1, 2.5, 0]) == [1.0, 2.5, 0.0]


# ---------------------------------------------------------------------------
# Batch embedding
# ---------------------------------------------------------------------------


class TestEmbedMany:
    @pytest.mark.asyncio
    async def test_partial_failure_is_isolated(self) -> None:
        provider = FakeEmbeddingProvider(fail_on=("BROKEN",))
        client = EmbeddingClient(provider, inter_call_delay=0)
        chunks = [
            _chunk(0, "refund one"),
            _chunk(1, "refund two"),
            _chunk(2, "BROKEN refund three"),
            _chunk(3, "refund four"),
            _chunk(4, "refund five"),
        ]

        result = await client.embed_many(chunks)

        assert [e.chunk.chunk_index for e in result.embedded] == [0, 1, 3, 4]
        assert len(result.failures) == 1
        assert result.failures[0].chunk_index == 2
        assert result.failures[0].stage == "embedding"

    @pytest.mark.asyncio
    async def test_all_failures_raise(self) -> None:
        provider = FakeEmbeddingProvider(fail_on=("BROKEN",))
        client = EmbeddingClient(provider, inter_call_delay=0)
        chunks = [_chunk(i, f"BROKEN {i}") for i in range(5)]

        with pytest.raises(ProviderError) as exc_info:
            await client.embed_many(chunks)
        assert exc_info.value.reason == "batch_failed"

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self) -> None:
        client = EmbeddingClient(FakeEmbeddingProvider())
        with pytest.raises(ValidationError):
            await client.embed_many([])

    @pytest.mark.asyncio
    async def test_calls_are_sequential_in_chunk_order(self) -> None:
        provider = FakeEmbeddingProvider()
        client = EmbeddingClient(provider, inter_call_delay=0)

        await client.embed_many([_chunk(i, f"chunk {i}") for i in range(3)])

        assert provider.calls == ["chunk 0", "chunk 1", "chunk 2"]

    @pytest.mark.asyncio
    async def test_embedded_chunks_record_model_and_size(self) -> None:
        client = EmbeddingClient(FakeEmbeddingProvider(), inter_call_delay=0)

        result = await client.embed_many([_chunk(0, "refund")])

        assert result.embedded[0].model == "text-embedding-3-small"
        assert result.embedded[0].dimensions == len(result.embedded[0].vector)

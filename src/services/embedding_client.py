"""Caching, validating front-end to the embedding provider.

Every text that becomes a vector (ingested chunks and user queries alike)
goes through :class:`EmbeddingClient`:

    clean text -> check dimensions -> cache lookup -> provider call
               -> validate vector -> cache store

The cache is an injected :class:`~src.interfaces.cache_provider.ICacheProvider`
owned by this client instance.  Lookups are best-effort: a miss (or an
unavailable cache) always falls through to a provider call.

Batch embedding is sequential with a short pause between
calls so one large document does not burst through the provider's rate
limit; per-chunk failures are recorded and skipped.
"""

from __future__ import annotations

import asyncio
import hashlib
import math
from numbers import Real
from typing import Any

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.rag import (
    ChunkFailure,
    DocumentChunk,
    EmbeddedChunk,
    EmbeddingBatchResult,
    EmbeddingOptions,
)
from src.utils.errors import ProviderError, ValidationError
from src.utils.text_normalizer import clean_embedding_text

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

# Documented output-size ranges for models that accept a ``dimensions`` argument.
_MODEL_MAX_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}
# Models that only ever return their native size.
_FIXED_DIMENSION_MODELS = frozenset({"text-embedding-ada-002"})


def validate_vector(vector: Any) -> list[float]:
    """Return *vector* as a list of floats if it is a usable embedding.

    Raises
    ------
    ValidationError
        If the vector is empty or contains a non-numeric, NaN or infinite
        component.
    """
    if isinstance(vector, (str, bytes)) or not hasattr(vector, "__iter__"):
        raise ValidationError("Embedding vector must be a sequence of numbers")
    values = list(vector)
    if not values:
        raise ValidationError("Embedding vector is empty")
    for idx, value in enumerate(values):
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ValidationError(f"Embedding component {idx} is not a number")
        if not math.isfinite(value):
            raise ValidationError(f"Embedding component {idx} is not finite")
    return [float(v) for v in values]


class EmbeddingClient:
    """Turns text into validated embedding vectors, with a TTL cache.

    Parameters
    ----------
    provider:
        Raw embedding provider (network client).
    cache:
        Cache for ``(model, cleaned text) -> vector``; ``None`` disables
        caching entirely.
    model:
        Default embedding model.
    dimensions:
        Default requested output dimensionality (``None`` = model default).
    inter_call_delay:
        Seconds to pause between sequential calls in :meth:`embed_many`.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        cache: ICacheProvider | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int | None = None,
        inter_call_delay: float = 0.1,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._model = model
        self._dimensions = dimensions
        self._inter_call_delay = inter_call_delay
        if dimensions is not None:
            self._check_dimensions(model, dimensions)

    @property
    def model(self) -> str:
        return self._model

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str, options: EmbeddingOptions | None = None) -> list[float]:
        """Embed one text.

        Raises
        ------
        ValidationError
            Non-string or empty-after-cleaning text, or an out-of-range
            dimensionality request.  No provider call is made.
        ProviderError
            The provider call failed or returned an invalid vector.
        """
        opts = options or EmbeddingOptions()
        model = opts.model or self._model
        dimensions = opts.dimensions if opts.dimensions is not None else self._dimensions

        if not isinstance(text, str):
            raise ValidationError("Text to embed must be a string")
        cleaned = clean_embedding_text(text)
        if not cleaned:
            raise ValidationError("Text to embed is empty after cleaning")
        self._check_dimensions(model, dimensions)

        key = self._cache_key(model, dimensions, cleaned)
        if opts.use_cache:
            cached = await self._cache_get(key)
            if cached is not None:
                return list(cached)

        raw = await self._provider.create_embedding(cleaned, model=model, dimensions=dimensions)
        try:
            vector = validate_vector(raw)
        except ValidationError as exc:
            logger.error(
                "embedding_invalid_response",
                model=model,
                provider=self._provider.get_provider_name(),
                error=exc.message,
            )
            raise ProviderError(
                message=f"Invalid provider response: {exc.message}",
                provider_name=self._provider.get_provider_name(),
                reason="invalid_response",
            ) from exc

        if dimensions is not None and len(vector) != dimensions:
            raise ProviderError(
                message=f"Provider returned {len(vector)} dimensions, expected {dimensions}",
                provider_name=self._provider.get_provider_name(),
                reason="invalid_response",
            )

        if opts.use_cache:
            await self._cache_set(key, vector)
        return vector

    async def embed_many(
        self,
        chunks: list[DocumentChunk],
        options: EmbeddingOptions | None = None,
    ) -> EmbeddingBatchResult:
        """Embed *chunks* one after another, skipping the ones that fail.

        Raises
        ------
        ValidationError
            If *chunks* is empty.
        ProviderError
            If not a single chunk could be embedded.
        """
        if not chunks:
            raise ValidationError("No chunks to embed")

        opts = options or EmbeddingOptions()
        model = opts.model or self._model
        embedded: list[EmbeddedChunk] = []
        failures: list[ChunkFailure] = []

        for position, chunk in enumerate(chunks):
            if position > 0 and self._inter_call_delay > 0:
                await asyncio.sleep(self._inter_call_delay)
            try:
                vector = await self.embed(chunk.text, opts)
            except (ValidationError, ProviderError) as exc:
                reason = exc.reason if isinstance(exc, ProviderError) else exc.code
                logger.warning(
                    "chunk_embedding_failed",
                    chunk_id=chunk.chunk_id,
                    chunk_index=chunk.chunk_index,
                    reason=reason,
                    error=str(exc),
                )
                failures.append(
                    ChunkFailure(
                        chunk_id=chunk.chunk_id,
                        chunk_index=chunk.chunk_index,
                        stage="embedding",
                        error=str(exc),
                    )
                )
                continue
            embedded.append(
                EmbeddedChunk(chunk=chunk, vector=vector, model=model, dimensions=len(vector))
            )

        logger.info(
            "embedding_batch_complete",
            total=len(chunks),
            succeeded=len(embedded),
            failed=len(failures),
            model=model,
        )
        if not embedded:
            raise ProviderError(
                message=f"Failed to generate embeddings for any of {len(chunks)} chunks",
                provider_name=self._provider.get_provider_name(),
                reason="batch_failed",
            )
        return EmbeddingBatchResult(embedded=embedded, failures=failures)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_dimensions(model: str, dimensions: int | None) -> None:
        if dimensions is None:
            return
        if isinstance(dimensions, bool) or not isinstance(dimensions, int):
            raise ValidationError(f"Dimensions must be an integer, got {dimensions!r}")
        if model in _FIXED_DIMENSION_MODELS:
            raise ValidationError(f"Model {model} does not support custom dimensions")
        max_dimensions = _MODEL_MAX_DIMENSIONS.get(model)
        if dimensions < 1 or (max_dimensions is not None and dimensions > max_dimensions):
            upper = max_dimensions if max_dimensions is not None else "unbounded"
            raise ValidationError(
                f"Invalid dimensions {dimensions} for model {model} (valid range 1-{upper})"
            )

    @staticmethod
    def _cache_key(model: str, dimensions: int | None, cleaned: str) -> str:
        model_key = f"{model}@{dimensions}" if dimensions is not None else model
        return hashlib.sha256(f"{model_key}:{cleaned}".encode("utf-8")).hexdigest()

    async def _cache_get(self, key: str) -> list[float] | None:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(key)
        except Exception as exc:
            logger.warning("embedding_cache_get_failed", error=str(exc))
            return None

    async def _cache_set(self, key: str, vector: list[float]) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, vector)
        except Exception as exc:
            logger.warning("embedding_cache_set_failed", error=str(exc))

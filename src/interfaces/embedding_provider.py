"""Abstract base class for embedding service providers.

An embedding provider is the raw network client: it turns one piece of
already-cleaned text into a vector.  Input cleaning, caching, dimension
checks and response validation live one level up in
:class:`~src.services.embedding_client.EmbeddingClient`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    Providers must be assumed to have provider-side rate limits and
    transient failures; they classify those failures but never retry.
    """

    @abstractmethod
    async def create_embedding(
        self,
        text: str,
        model: str,
        dimensions: int | None = None,
    ) -> list[float]:
        """Embed a single text.

        Parameters
        ----------
        text:
            Cleaned, non-empty input text.
        model:
            Embedding model identifier, e.g. ``"text-embedding-3-small"``.
        dimensions:
            Requested output dimensionality, ``None`` for the model default.

        Returns
        -------
        list[float]
            The raw vector as returned by the provider (unvalidated).

        Raises
        ------
        src.utils.errors.ProviderError
            With a classified ``reason`` when the call fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider (e.g. ``"openai"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (API key present)."""

"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning;
they are stored per tenant in ChromaDB and used for similarity search.

    OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims) by default,
    or any OpenAI-compatible endpoint via ``OPENAI_BASE_URL``.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]

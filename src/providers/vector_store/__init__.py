"""Vector store provider implementations.

ChromaDBProvider keeps one persistent cosine-space collection per tenant
under CHROMADB_PERSIST_DIR (default: ./data/chromadb).
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]

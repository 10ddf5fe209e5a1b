"""Abstract base class for vector database engines.

This is the thin engine contract (collections, points, similarity query).
Collection naming, point-id derivation, payload layout, threshold
filtering and vector validation are owned by
:class:`~src.services.vector_store_manager.VectorStoreManager`, so a
different engine (Qdrant, pgvector, ...) only has to implement these calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.rag import VectorSearchHit


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for a vector database with named cosine-distance collections."""

    @abstractmethod
    async def get_or_create_collection(self, name: str, dimension: int) -> bool:
        """Make sure collection *name* exists.

        Must be idempotent: a collection created concurrently by another
        writer counts as success.

        Returns
        -------
        bool
            ``True`` if this call created the collection.

        Raises
        ------
        src.utils.errors.StorageError
            If the engine rejects the request.
        """

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        """Return ``True`` if collection *name* exists."""

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Return the names of every collection."""

    @abstractmethod
    async def delete_collection(self, name: str) -> bool:
        """Delete collection *name*; ``False`` if it did not exist."""

    @abstractmethod
    async def upsert_point(
        self,
        collection: str,
        point_id: str,
        vector: list[float],
        document: str,
        payload: dict[str, Any],
    ) -> None:
        """Insert or overwrite one point.

        Parameters
        ----------
        collection:
            Target collection (must exist).
        point_id:
            Point identifier; writing the same id again replaces the point.
        vector:
            Validated embedding vector.
        document:
            Chunk text stored next to the vector.
        payload:
            Flat metadata mapping (str / int / float / bool values).

        Raises
        ------
        src.utils.errors.StorageError
            If the write fails.
        """

    @abstractmethod
    async def query(
        self,
        collection: str,
        vector: list[float],
        limit: int,
    ) -> list[VectorSearchHit]:
        """Return up to *limit* nearest points with payloads and scores.

        An empty collection yields an empty list.
        """

    @abstractmethod
    async def delete_points(
        self,
        collection: str,
        where: dict[str, Any],
    ) -> int:
        """Delete every point whose payload matches *where*.

        Parameters
        ----------
        where:
            Payload equality filter, values may be lists meaning "any of".

        Returns
        -------
        int
            Number of points deleted.
        """

    @abstractmethod
    async def count(self, collection: str) -> int:
        """Return the number of points stored in *collection*."""

"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Every tenant gets its own cosine-distance collection; embeddings are always
pre-computed by the embedding client, so Chroma's built-in embedding
function is replaced by a no-op.  The Chroma client is synchronous, so every
call is pushed to a worker thread with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  Chroma's bundled
# PostHog client breaks against newer posthog releases; the env var, the
# posthog switch and the client Settings below all have to agree.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import VectorSearchHit
from src.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Chunks and queries are embedded upstream, so Chroma's default ONNX
    model would only cost memory.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Embeddings are pre-computed; ChromaDB's built-in embedding "
            "should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


def _build_where(where: dict[str, Any]) -> dict[str, Any]:
    """Translate a flat equality / any-of filter into Chroma's where syntax."""
    clauses: list[dict[str, Any]] = []
    for key, value in where.items():
        if isinstance(value, (list, tuple, set)):
            clauses.append({key: {"$in": list(value)}})
        else:
            clauses.append({key: {"$eq": value}})
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Collection handling
    # ------------------------------------------------------------------

    def _open_or_create(self, name: str, dimension: int) -> tuple[Any, bool]:
        existed = name in self._list_names()
        metadata = {"hnsw:space": "cosine", "dimension": dimension}
        # Collections persisted with a different embedding function make
        # newer Chroma versions raise ValueError; reopen without one then.
        try:
            collection = self._client.get_or_create_collection(
                name=name,
                metadata=metadata,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            collection = self._client.get_or_create_collection(name=name, metadata=metadata)
        self._collections[name] = collection
        return collection, not existed

    def _get(self, name: str) -> Any | None:
        cached = self._collections.get(name)
        if cached is not None:
            return cached
        if name not in self._list_names():
            return None
        try:
            collection = self._client.get_collection(
                name=name, embedding_function=_NoopEmbeddingFunction()
            )
        except ValueError:
            collection = self._client.get_collection(name=name)
        self._collections[name] = collection
        return collection

    def _list_names(self) -> list[str]:
        # Chroma 0.6 returns names, other releases return Collection objects.
        return [c if isinstance(c, str) else c.name for c in self._client.list_collections()]

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def get_or_create_collection(self, name: str, dimension: int) -> bool:
        try:
            _, created = await asyncio.to_thread(self._open_or_create, name, dimension)
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB could not create collection {name!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if created:
            logger.info("chromadb_collection_created", collection=name, dimension=dimension)
        return created

    async def collection_exists(self, name: str) -> bool:
        return name in await self.list_collections()

    async def list_collections(self) -> list[str]:
        try:
            return await asyncio.to_thread(self._list_names)
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB list_collections failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_collection(self, name: str) -> bool:
        self._collections.pop(name, None)
        if not await self.collection_exists(name):
            return False
        try:
            await asyncio.to_thread(self._client.delete_collection, name)
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB delete_collection failed for {name!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_collection_deleted", collection=name)
        return True

    async def upsert_point(
        self,
        collection: str,
        point_id: str,
        vector: list[float],
        document: str,
        payload: dict[str, Any],
    ) -> None:
        target = await asyncio.to_thread(self._get, collection)
        if target is None:
            raise StorageError(
                message=f"ChromaDB collection {collection!r} does not exist",
                provider_name=self.get_provider_name(),
            )
        try:
            await asyncio.to_thread(
                target.upsert,
                ids=[point_id],
                embeddings=[vector],
                documents=[document],
                metadatas=[payload],
            )
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB upsert failed for point {point_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def query(
        self,
        collection: str,
        vector: list[float],
        limit: int,
    ) -> list[VectorSearchHit]:
        target = await asyncio.to_thread(self._get, collection)
        if target is None:
            return []

        try:
            stored = await asyncio.to_thread(target.count)
            if stored == 0:
                return []
            results = await asyncio.to_thread(
                target.query,
                query_embeddings=[vector],
                n_results=min(limit, stored),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB query failed on {collection!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        documents = results["documents"][0] if results.get("documents") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else []
        distances = results["distances"][0] if results.get("distances") else []

        hits: list[VectorSearchHit] = []
        for idx, point_id in enumerate(ids):
            distance = distances[idx] if idx < len(distances) else 1.0
            hits.append(
                VectorSearchHit(
                    point_id=str(point_id),
                    # Cosine distance is in [0, 2]; similarity = 1 - distance.
                    score=1.0 - float(distance),
                    document=(documents[idx] if idx < len(documents) else "") or "",
                    payload=dict(metadatas[idx] or {}) if idx < len(metadatas) else {},
                )
            )
        return hits

    async def delete_points(self, collection: str, where: dict[str, Any]) -> int:
        target = await asyncio.to_thread(self._get, collection)
        if target is None:
            return 0

        chroma_where = _build_where(where)
        try:
            existing = await asyncio.to_thread(target.get, where=chroma_where, include=[])
            ids = existing["ids"] or []
            if ids:
                await asyncio.to_thread(target.delete, ids=ids)
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB delete failed on {collection!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_points_deleted", collection=collection, deleted_count=len(ids))
        return len(ids)

    async def count(self, collection: str) -> int:
        target = await asyncio.to_thread(self._get, collection)
        if target is None:
            return 0
        return await asyncio.to_thread(target.count)

    def get_provider_name(self) -> str:
        return "chromadb"

"""Per-tenant vector collection management.

:class:`VectorStoreManager` sits between the pipelines and the raw vector
engine (:class:`~src.interfaces.vector_store_provider.IVectorStoreProvider`)
and owns everything tenant-specific:

- **Collection naming** -- one collection per tenant, so search results are
  isolated without per-query filtering.
- **Lazy creation** -- the first write for a tenant creates its collection
  at the embedding's dimensionality; concurrent first writers are fine
  because the engine call is get-or-create.
- **Point ids** -- a pure function of the chunk id, so re-ingesting a chunk
  overwrites its point instead of duplicating it.
- **Payload layout** -- everything needed to cite a chunk without a
  second lookup.
- **Threshold-then-limit search**.
"""

from __future__ import annotations

import asyncio
import hashlib
from datetime import datetime, timezone
from typing import Any

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import RetrievedChunk, UpsertOutcome
from src.services.embedding_client import validate_vector
from src.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)

POINT_ID_SCHEMES = ("v1", "v2")

_INT32_MASK = 0xFFFFFFFF
_INT63_MASK = 0x7FFF_FFFF_FFFF_FFFF


def legacy_point_id(chunk_id: str) -> int:
    """32-bit rolling hash of *chunk_id* (``h = h * 31 + unit``), made non-negative.

    Iterates UTF-16 code units and wraps to a signed 32-bit integer after
    every step, so ids match the ones written by earlier deployments.
    """
    h = 0
    encoded = chunk_id.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = ((h << 5) - h + unit) & _INT32_MASK
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def fingerprint_point_id(chunk_id: str) -> int:
    """64-bit BLAKE2b fingerprint of *chunk_id*, masked to a non-negative int63."""
    digest = hashlib.blake2b(chunk_id.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") & _INT63_MASK


def derive_point_id(chunk_id: str, scheme: str = "v2") -> int:
    """Return the stable point id for *chunk_id* under *scheme*."""
    if scheme == "v1":
        return legacy_point_id(chunk_id)
    if scheme == "v2":
        return fingerprint_point_id(chunk_id)
    raise ValidationError(f"Unknown point id scheme {scheme!r}")


def _flatten_payload(payload: dict[str, Any]) -> dict[str, str | int | float | bool]:
    """Drop ``None`` values and stringify anything the engine can't store."""
    flat: dict[str, str | int | float | bool] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        elif isinstance(value, datetime):
            flat[key] = value.isoformat()
        else:
            flat[key] = str(value)
    return flat


class VectorStoreManager:
    """Tenant-scoped facade over a vector engine.

    Parameters
    ----------
    provider:
        The vector engine adapter.
    collection_prefix:
        Prefix for tenant collection names (default ``"org_"``).
    point_id_scheme:
        ``"v2"`` (64-bit fingerprint, default) or ``"v1"`` (legacy 32-bit
        rolling hash, for collections written by older deployments).
    """

    def __init__(
        self,
        provider: IVectorStoreProvider,
        collection_prefix: str = "org_",
        point_id_scheme: str = "v2",
    ) -> None:
        if point_id_scheme not in POINT_ID_SCHEMES:
            raise ValidationError(f"Unknown point id scheme {point_id_scheme!r}")
        self._provider = provider
        self._prefix = collection_prefix
        self._scheme = point_id_scheme
        self._ensured: set[str] = set()
        self._ensure_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Naming / ids
    # ------------------------------------------------------------------

    def collection_name(self, tenant_id: str) -> str:
        if not tenant_id:
            raise ValidationError("Tenant id is required")
        return f"{self._prefix}{tenant_id}"

    def point_id(self, chunk_id: str) -> int:
        return derive_point_id(chunk_id, self._scheme)

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    async def ensure_collection(self, tenant_id: str, dimension: int) -> bool:
        """Create the tenant's collection if needed.

        Returns ``True`` when this call created it.  Safe to call from
        concurrent writers: the engine treats "already exists" as success.
        """
        name = self.collection_name(tenant_id)
        if name in self._ensured:
            return False
        if dimension < 1:
            raise ValidationError(f"Collection dimension must be >= 1, got {dimension}")

        async with self._ensure_lock:
            if name in self._ensured:
                return False
            created = await self._provider.get_or_create_collection(name, dimension)
            self._ensured.add(name)
        if created:
            logger.info("tenant_collection_created", tenant_id=tenant_id, dimension=dimension)
        return created

    async def delete_collection(self, tenant_id: str) -> bool:
        """Delete the tenant's whole collection (tenant teardown only)."""
        name = self.collection_name(tenant_id)
        self._ensured.discard(name)
        deleted = await self._provider.delete_collection(name)
        logger.info("tenant_collection_deleted", tenant_id=tenant_id, existed=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(
        self,
        chunk_id: str,
        tenant_id: str,
        document_id: str,
        vector: list[float],
        payload: dict[str, Any],
    ) -> UpsertOutcome:
        """Write one chunk's point, creating the tenant collection on first use.

        Raises
        ------
        ValidationError
            If the vector is empty or has a non-finite component.
        StorageError
            If the engine write fails.
        """
        clean_vector = validate_vector(vector)
        created = await self.ensure_collection(tenant_id, len(clean_vector))
        name = self.collection_name(tenant_id)
        point_id = self.point_id(chunk_id)

        stored_payload = _flatten_payload(
            {
                **payload,
                "tenant_id": tenant_id,
                "document_id": document_id,
                "chunk_id": chunk_id,
                "embedding_size": len(clean_vector),
                "created_at": payload.get("created_at")
                or datetime.now(timezone.utc).isoformat(),
            }
        )
        chunk_text = str(payload.get("chunk", ""))
        stored_payload.pop("chunk", None)
        stored_payload.setdefault("chunk_length", len(chunk_text))

        await self._provider.upsert_point(
            collection=name,
            point_id=str(point_id),
            vector=clean_vector,
            document=chunk_text,
            payload=stored_payload,
        )
        logger.debug(
            "chunk_point_upserted",
            tenant_id=tenant_id,
            document_id=document_id,
            chunk_id=chunk_id,
            point_id=point_id,
        )
        return UpsertOutcome(
            chunk_id=chunk_id,
            point_id=point_id,
            collection=name,
            created_collection=created,
        )

    async def delete_document_points(self, tenant_id: str, document_ids: list[str]) -> int:
        """Delete every point belonging to *document_ids* in the tenant's collection."""
        if not document_ids:
            return 0
        name = self.collection_name(tenant_id)
        deleted = await self._provider.delete_points(
            name, {"document_id": list(dict.fromkeys(document_ids))}
        )
        logger.info(
            "document_points_deleted",
            tenant_id=tenant_id,
            documents=len(document_ids),
            deleted_points=deleted,
        )
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        tenant_id: str,
        query_vector: list[float],
        top_k: int = 5,
        score_threshold: float = 0.50,
    ) -> list[RetrievedChunk]:
        """Return the best chunks scoring at least *score_threshold*.

        Candidates are filtered by the threshold first and only then cut to
        *top_k*, sorted by descending score.  A tenant without a collection
        yields an empty list.
        """
        if top_k < 1:
            raise ValidationError(f"top_k must be >= 1, got {top_k}")
        clean_vector = validate_vector(query_vector)
        name = self.collection_name(tenant_id)

        # HNSW neighbours are approximate; over-fetch before filtering.
        hits = await self._provider.query(name, clean_vector, limit=max(top_k * 4, top_k))
        passing = sorted(
            (h for h in hits if h.score >= score_threshold),
            key=lambda h: h.score,
            reverse=True,
        )

        results = [
            RetrievedChunk(
                score=hit.score,
                chunk_text=hit.document or str(hit.payload.get("chunk", "")),
                file_name=str(hit.payload.get("file_name", "")),
                file_url=str(hit.payload.get("file_url", "")),
                document_id=str(hit.payload.get("document_id", "")),
                chunk_index=int(hit.payload.get("chunk_index", 0)),
            )
            for hit in passing[:top_k]
        ]
        logger.debug(
            "vector_search_complete",
            tenant_id=tenant_id,
            candidates=len(hits),
            above_threshold=len(passing),
            returned=len(results),
        )
        return results

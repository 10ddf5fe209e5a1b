"""Shared pytest fixtures and in-memory fakes for the knowledge-base test suite."""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import quote

import pytest
import pytest_asyncio

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.documents import ContentType, Document, Folder
from src.models.rag import VectorSearchHit
from src.providers.metadata.sqlite_metadata_store import SQLiteMetadataStore
from src.providers.storage.s3_storage_provider import extract_storage_key
from src.utils.errors import NotFoundError, ProviderError, StorageError

TOPICS = ("refund", "vacation", "security", "payroll", "onboarding")
_WORD = re.compile(r"[a-z]+")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic topic-count embeddings.

    Component ``i`` counts occurrences of ``TOPICS[i]``; a constant last
    component keeps every vector non-zero.  Texts containing any string in
    *fail_on* raise a ProviderError.
    """

    def __init__(self, fail_on: tuple[str, ...] = ()) -> None:
        self.calls: list[str] = []
        self._fail_on = fail_on

    async def create_embedding(
        self, text: str, model: str, dimensions: int | None = None
    ) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self._fail_on):
            raise ProviderError("simulated outage", provider_name="fake", reason="api_error")
        words = _WORD.findall(text.lower())
        vector = [float(words.count(topic)) for topic in TOPICS] + [0.1]
        if dimensions is not None:
            vector = (vector + [0.0] * dimensions)[:dimensions]
        return vector

    def get_provider_name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def _matches(payload: dict[str, Any], where: dict[str, Any]) -> bool:
    for key, expected in where.items():
        value = payload.get(key)
        if isinstance(expected, list):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class InMemoryVectorStore(IVectorStoreProvider):
    """Cosine-similarity vector store keeping everything in dicts."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, Any]] = {}
        self.fail_deletes = False

    async def get_or_create_collection(self, name: str, dimension: int) -> bool:
        existing = self.collections.get(name)
        if existing is not None:
            if existing["dimension"] != dimension:
                raise StorageError(f"Collection {name} has dimension {existing['dimension']}")
            return False
        self.collections[name] = {"dimension": dimension, "points": {}}
        return True

    async def collection_exists(self, name: str) -> bool:
        return name in self.collections

    async def list_collections(self) -> list[str]:
        return list(self.collections)

    async def delete_collection(self, name: str) -> bool:
        return self.collections.pop(name, None) is not None

    async def upsert_point(
        self,
        collection: str,
        point_id: str,
        vector: list[float],
        document: str,
        payload: dict[str, Any],
    ) -> None:
        target = self.collections[collection]
        if len(vector) != target["dimension"]:
            raise StorageError("dimension mismatch")
        target["points"][point_id] = (list(vector), document, dict(payload))

    async def query(self, collection: str, vector: list[float], limit: int) -> list[VectorSearchHit]:
        target = self.collections.get(collection)
        if target is None:
            return []
        hits = [
            VectorSearchHit(
                point_id=point_id,
                score=_cosine(vector, stored),
                document=document,
                payload=payload,
            )
            for point_id, (stored, document, payload) in target["points"].items()
        ]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    async def delete_points(self, collection: str, where: dict[str, Any]) -> int:
        if self.fail_deletes:
            raise StorageError("vector delete failed", provider_name="memory")
        target = self.collections.get(collection)
        if target is None:
            return 0
        doomed = [pid for pid, (_, _, payload) in target["points"].items() if _matches(payload, where)]
        for pid in doomed:
            del target["points"][pid]
        return len(doomed)

    async def count(self, collection: str) -> int:
        target = self.collections.get(collection)
        return len(target["points"]) if target else 0


class InMemoryObjectStorage(IObjectStorageProvider):
    """Object store with S3-shaped locators; deletions are recorded."""

    BUCKET = "test-bucket"

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_delete_keys: set[str] = set()

    def locator_for(self, key: str) -> str:
        return f"https://{self.BUCKET}.s3.us-east-1.amazonaws.com/{quote(key)}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = data
        return self.locator_for(key)

    async def get(self, locator: str) -> bytes:
        key = self.key_from_locator(locator)
        if key not in self.objects:
            raise NotFoundError(f"Object {key} not found", provider_name="memory")
        return self.objects[key]

    async def delete(self, key: str) -> None:
        if key in self.fail_delete_keys:
            raise StorageError(f"delete failed for {key}", provider_name="memory")
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def list_by_prefix(self, prefix: str) -> list[str]:
        return sorted(key for key in self.objects if key.startswith(prefix))

    def key_from_locator(self, locator: str) -> str:
        return extract_storage_key(locator)

    def get_provider_name(self) -> str:
        return "memory"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_folder(
    folder_id: str,
    tenant_id: str = "org-1",
    parent_id: str | None = None,
    name: str | None = None,
) -> Folder:
    return Folder(id=folder_id, tenant_id=tenant_id, name=name or folder_id, parent_id=parent_id)


def make_document(
    document_id: str,
    folder_id: str,
    tenant_id: str = "org-1",
    file_url: str = "",
    name: str | None = None,
    content_type: ContentType = ContentType.TXT,
) -> Document:
    return Document(
        id=document_id,
        tenant_id=tenant_id,
        folder_id=folder_id,
        name=name or f"{document_id}.txt",
        content_type=content_type,
        file_url=file_url,
        uploaded_by="user-1",
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_provider() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def object_storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest_asyncio.fixture
async def metadata_store(tmp_path: Path) -> SQLiteMetadataStore:
    """An initialised SQLite metadata store in a temp directory."""
    store = SQLiteMetadataStore(db_path=tmp_path / "metadata.db")
    await store.initialize()
    return store


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider whose complete() returns a fixed answer.

    Override with ``mock_llm_provider.complete.return_value = "..."`` or
    ``side_effect`` for specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="Refunds are issued within 30 days.")
    return mock

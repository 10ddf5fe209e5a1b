"""Integration tests for FastAPI API endpoints using TestClient.

The app is assembled like ``main.create_app`` but with in-memory storage,
vector and embedding fakes plus a real SQLite metadata store, so uploads
run through the real ingestion workers end to end.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.pipeline.ingestion_queue import IngestionQueue
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.metadata.sqlite_metadata_store import SQLiteMetadataStore
from src.services.deletion_service import DeletionService
from src.services.embedding_client import EmbeddingClient
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from src.services.retrieval_service import NO_ANSWER_REPLY, RetrievalService
from src.services.vector_store_manager import VectorStoreManager
from tests.conftest import FakeEmbeddingProvider, InMemoryObjectStorage, InMemoryVectorStore

_TXT = "text/plain"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app(tmp_path: Path, llm, max_upload_bytes: int = 10_000) -> FastAPI:
    settings = Settings(_env_file=None, max_upload_bytes=max_upload_bytes)
    metadata_store = SQLiteMetadataStore(db_path=tmp_path / "api.db")
    storage = InMemoryObjectStorage()
    vector_store = VectorStoreManager(InMemoryVectorStore())
    embedding_client = EmbeddingClient(FakeEmbeddingProvider(), inter_call_delay=0)
    tracker = ProgressTracker()
    ingestion_service = IngestionService(
        storage=storage,
        text_extractor=TextExtractor(),
        chunker=TextChunker(),
        embedding_client=embedding_client,
        vector_store=vector_store,
        metadata_store=metadata_store,
        tracker=tracker,
        tmp_dir=tmp_path / "work",
    )
    queue = IngestionQueue(
        ingestion_service, tracker=tracker, metadata_store=metadata_store, workers=1
    )

    @asynccontextmanager
    async def lifespan(application: FastAPI):  # noqa: ANN202
        await metadata_store.initialize()
        await queue.start()
        yield
        await queue.stop()

    app = FastAPI(version="test", lifespan=lifespan)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)

    app.state.settings = settings
    app.state.metadata_store = metadata_store
    app.state.storage = storage
    app.state.ingestion_queue = queue
    app.state.retrieval_service = RetrievalService(embedding_client, vector_store, llm=llm)
    app.state.deletion_service = DeletionService(metadata_store, storage, vector_store)
    app.state.provider_registry = {"embedding": True, "llm": True, "storage": True}
    return app


@pytest.fixture()
def client(tmp_path: Path, mock_llm_provider) -> TestClient:
    app = _create_test_app(tmp_path, mock_llm_provider)
    with TestClient(app) as test_client:
        yield test_client


def _create_folder(client: TestClient, name: str, parent_id: str | None = None) -> str:
    response = client.post(
        "/api/v1/folders",
        json={"tenant_id": "org-1", "name": name, "parent_id": parent_id, "created_by": "u1"},
    )
    assert response.status_code == 201, response.text
    return response.json()["folder"]["id"]


def _upload(client: TestClient, folder_id: str, content: bytes, mime: str = _TXT):
    return client.post(
        "/api/v1/documents",
        files={"file": ("policy.txt", content, mime)},
        data={"tenant_id": "org-1", "folder_id": folder_id, "uploaded_by": "u1"},
    )


def _wait_for_ingestion(client: TestClient, document_id: str) -> dict:
    for _ in range(100):
        response = client.get(
            f"/api/v1/documents/{document_id}/ingestion", params={"tenant_id": "org-1"}
        )
        body = response.json()
        if body["status"] in ("completed", "partially_completed", "failed"):
            return body
        time.sleep(0.05)
    raise AssertionError(f"ingestion of {document_id} did not finish")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health_reports_providers_and_queue(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == "test"
        assert body["ingestion_queue"] == {"running": True, "pending": 0}


class TestFolders:
    def test_duplicate_sibling_is_400(self, client: TestClient) -> None:
        _create_folder(client, "Policies")
        response = client.post(
            "/api/v1/folders", json={"tenant_id": "org-1", "name": "Policies"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_missing_parent_is_404(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/folders",
            json={"tenant_id": "org-1", "name": "Child", "parent_id": "ghost"},
        )
        assert response.status_code == 404


class TestUploadAndSearch:
    def test_upload_ingest_search_and_chat(self, client: TestClient, mock_llm_provider) -> None:
        folder_id = _create_folder(client, "Policies")

        response = _upload(client, folder_id, b"Refund requests are approved within 30 days.")
        assert response.status_code == 202, response.text
        document_id = response.json()["document"]["id"]
        assert response.json()["ingestion"]["stage"] == "queued"

        status = _wait_for_ingestion(client, document_id)
        assert status["status"] == "completed"
        assert status["stored_chunks"] == 1

        search = client.post(
            "/api/v1/search", json={"tenant_id": "org-1", "query": "refund", "top_k": 3}
        )
        assert search.status_code == 200
        assert search.json()["total_results"] == 1
        assert search.json()["results"][0]["document_id"] == document_id

        chat = client.post(
            "/api/v1/chat", json={"tenant_id": "org-1", "question": "How do refunds work?"}
        )
        assert chat.status_code == 200
        assert chat.json()["grounded"] is True
        mock_llm_provider.complete.assert_awaited_once()

    def test_chat_without_documents(self, client: TestClient) -> None:
        chat = client.post(
            "/api/v1/chat", json={"tenant_id": "org-1", "question": "What is the payroll date?"}
        )
        assert chat.status_code == 200
        assert chat.json() == {"answer": NO_ANSWER_REPLY, "sources": [], "grounded": False}

    def test_unsupported_type_is_415(self, client: TestClient) -> None:
        folder_id = _create_folder(client, "Images")
        response = _upload(client, folder_id, b"\x89PNG", mime="image/png")
        assert response.status_code == 415

    def test_oversized_upload_is_413(self, client: TestClient) -> None:
        folder_id = _create_folder(client, "Big")
        response = _upload(client, folder_id, b"a" * 10_001)
        assert response.status_code == 413

    def test_empty_upload_is_400(self, client: TestClient) -> None:
        folder_id = _create_folder(client, "Empty")
        response = _upload(client, folder_id, b"")
        assert response.status_code == 400

    def test_upload_into_missing_folder_is_404(self, client: TestClient) -> None:
        response = _upload(client, "ghost", b"hello")
        assert response.status_code == 404

    def test_empty_query_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/v1/search", json={"tenant_id": "org-1", "query": "  "})
        assert response.status_code == 400

    def test_unknown_document_status_is_404(self, client: TestClient) -> None:
        response = client.get("/api/v1/documents/nope/ingestion", params={"tenant_id": "org-1"})
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"


class TestDeletion:
    def test_folder_cascade_then_search_is_empty(self, client: TestClient) -> None:
        root = _create_folder(client, "Root")
        child = _create_folder(client, "Child", parent_id=root)
        document_id = _upload(client, child, b"Vacation rules: 25 days.").json()["document"]["id"]
        _wait_for_ingestion(client, document_id)

        response = client.delete(f"/api/v1/tenants/org-1/folders/{root}")

        assert response.status_code == 200
        report = response.json()
        assert report["folders_deleted"] == 2
        assert report["documents_deleted"] == 1
        assert report["files_deleted"] == 1
        assert report["vectors_deleted"] == 1

        search = client.post("/api/v1/search", json={"tenant_id": "org-1", "query": "vacation"})
        assert search.json()["total_results"] == 0

    def test_delete_missing_folder_is_404(self, client: TestClient) -> None:
        response = client.delete("/api/v1/tenants/org-1/folders/ghost")
        assert response.status_code == 404

    def test_tenant_teardown(self, client: TestClient) -> None:
        folder_id = _create_folder(client, "Docs")
        document_id = _upload(client, folder_id, b"Security badge policy.").json()["document"]["id"]
        _wait_for_ingestion(client, document_id)

        response = client.delete("/api/v1/tenants/org-1")

        assert response.status_code == 200
        report = response.json()
        assert report["collection_deleted"] is True
        assert report["objects_deleted"] == 1
        assert report["folders_deleted"] == 1
        assert report["documents_deleted"] == 1

"""FastAPI API routes for the knowledge base.

Service dependencies are resolved from ``app.state`` (populated at startup
in ``main.py``'s ``_build_all``) via ``Depends`` using the ``Annotated``
pattern.  Application errors are raised as ``KnowledgeBaseError`` subclasses
and turned into JSON by :class:`~src.api.middleware.ErrorHandlingMiddleware`.

# Endpoint                                        Method  Description
# -----------------------------------------------------------------------
# /api/v1/health                                  GET     Health + provider status
# /api/v1/folders                                 POST    Create a folder
# /api/v1/documents                               POST    Upload a file, queue ingestion
# /api/v1/documents/{document_id}/ingestion       GET     Poll ingestion status
# /api/v1/search                                  POST    Semantic search
# /api/v1/chat                                    POST    Grounded answer
# /api/v1/tenants/{tenant_id}/folders/{folder_id} DELETE  Cascading folder deletion
# /api/v1/tenants/{tenant_id}                     DELETE  Tenant teardown
"""

from __future__ import annotations

import uuid
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile

from src.api.schemas import (
    ChatRequest,
    CreateFolderRequest,
    DocumentUploadResponse,
    ErrorResponse,
    FolderResponse,
    HealthResponse,
    IngestionStatusResponse,
    SearchRequest,
    SearchResponse,
)
from src.config.settings import Settings
from src.interfaces.metadata_store import IMetadataStore
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.models.deletion import DeletionReport, TenantTeardownReport
from src.models.documents import ContentType, Document, Folder
from src.models.rag import GroundedAnswer
from src.pipeline.ingestion_queue import IngestionQueue
from src.providers.storage.s3_storage_provider import build_upload_key
from src.services.deletion_service import DeletionService
from src.services.retrieval_service import RetrievalService
from src.utils.errors import KnowledgeBaseError, NotFoundError, ValidationError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_metadata_store(request: Request) -> IMetadataStore:
    return request.app.state.metadata_store


def _get_storage(request: Request) -> IObjectStorageProvider:
    return request.app.state.storage


def _get_ingestion_queue(request: Request) -> IngestionQueue:
    return request.app.state.ingestion_queue


def _get_retrieval_service(request: Request) -> RetrievalService:
    return request.app.state.retrieval_service


def _get_deletion_service(request: Request) -> DeletionService:
    return request.app.state.deletion_service


SettingsDep = Annotated[Settings, Depends(_get_settings)]
MetadataStoreDep = Annotated[IMetadataStore, Depends(_get_metadata_store)]
StorageDep = Annotated[IObjectStorageProvider, Depends(_get_storage)]
QueueDep = Annotated[IngestionQueue, Depends(_get_ingestion_queue)]
RetrievalDep = Annotated[RetrievalService, Depends(_get_retrieval_service)]
DeletionDep = Annotated[DeletionService, Depends(_get_deletion_service)]


# ---------------------------------------------------------------------------
# Folder & document endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/folders",
    response_model=FolderResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Create a folder",
)
async def create_folder(
    body: CreateFolderRequest, metadata_store: MetadataStoreDep
) -> FolderResponse:
    folder = await metadata_store.create_folder(
        Folder(
            id=str(uuid.uuid4()),
            tenant_id=body.tenant_id,
            name=body.name.strip(),
            parent_id=body.parent_id,
            created_by=body.created_by,
        )
    )
    _logger.info("folder_created", folder_id=folder.id, tenant_id=folder.tenant_id)
    return FolderResponse(folder=folder)


@router.post(
    "/documents",
    response_model=DocumentUploadResponse,
    status_code=202,
    responses={
        404: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Upload a document and queue it for ingestion",
)
async def upload_document(
    settings: SettingsDep,
    metadata_store: MetadataStoreDep,
    storage: StorageDep,
    queue: QueueDep,
    file: UploadFile = File(...),
    tenant_id: str = Form(..., min_length=1),
    folder_id: str = Form(..., min_length=1),
    uploaded_by: str = Form(..., min_length=1),
) -> DocumentUploadResponse:
    """Store the file, create its record and hand it to the ingestion workers."""
    content_type = ContentType.from_mime_type(file.content_type or "")
    if content_type is None:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type: {file.content_type}. Allowed: PDF, DOCX, TXT",
        )

    # Read in chunks so an oversized upload is rejected early.
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum: {settings.max_upload_bytes} bytes.",
            )
        chunks.append(chunk)
    data = b"".join(chunks)
    if not data:
        raise ValidationError("Uploaded file is empty")

    folder = await metadata_store.get_folder(folder_id, tenant_id)
    if folder is None:
        raise NotFoundError(f"Folder {folder_id} not found")

    filename = file.filename or f"document.{content_type.value}"
    key = build_upload_key(tenant_id, uploaded_by, filename)
    file_url = await storage.put(key, data, content_type.mime_type)

    try:
        document = await metadata_store.create_document(
            Document(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                folder_id=folder.id,
                name=filename,
                content_type=content_type,
                file_url=file_url,
                size_bytes=len(data),
                uploaded_by=uploaded_by,
            )
        )
    except KnowledgeBaseError:
        await _discard_upload(storage, key)
        raise

    progress = await queue.submit(document)
    _logger.info(
        "document_uploaded",
        document_id=document.id,
        tenant_id=tenant_id,
        size_bytes=len(data),
        content_type=content_type.value,
    )
    return DocumentUploadResponse(document=document, ingestion=progress)


async def _discard_upload(storage: IObjectStorageProvider, key: str) -> None:
    try:
        await storage.delete(key)
    except KnowledgeBaseError as exc:
        _logger.warning("orphaned_upload", key=key, error=str(exc))


@router.get(
    "/documents/{document_id}/ingestion",
    response_model=IngestionStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Poll the ingestion status of a document",
)
async def get_ingestion_status(
    document_id: str,
    queue: QueueDep,
    metadata_store: MetadataStoreDep,
    tenant_id: str | None = Query(default=None),
) -> IngestionStatusResponse:
    """Return the live progress, or the persisted status after a restart."""
    progress = queue.get_status(document_id)
    if progress is not None and (tenant_id is None or progress.tenant_id == tenant_id):
        return IngestionStatusResponse(
            document_id=document_id,
            status=progress.stage.value,
            detail=progress.detail or None,
            error_code=progress.error_code,
            total_chunks=progress.total_chunks,
            stored_chunks=progress.stored_chunks,
        )

    if tenant_id is not None:
        document = await metadata_store.get_document(document_id, tenant_id)
        if document is not None:
            return IngestionStatusResponse(
                document_id=document_id,
                status=document.processing_status.value,
                detail=document.processing_detail,
            )
    raise NotFoundError(f"No ingestion status for document {document_id}")


# ---------------------------------------------------------------------------
# Retrieval endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=SearchResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Semantic search over a tenant's documents",
)
async def search(body: SearchRequest, retrieval: RetrievalDep) -> SearchResponse:
    results = await retrieval.retrieve(body.tenant_id, body.query, top_k=body.top_k)
    return SearchResponse(query=body.query, results=results, total_results=len(results))


@router.post(
    "/chat",
    response_model=GroundedAnswer,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Answer a question from a tenant's documents",
)
async def chat(body: ChatRequest, retrieval: RetrievalDep) -> GroundedAnswer:
    return await retrieval.answer(body.tenant_id, body.question, top_k=body.top_k)


# ---------------------------------------------------------------------------
# Deletion endpoints
# ---------------------------------------------------------------------------


@router.delete(
    "/tenants/{tenant_id}/folders/{folder_id}",
    response_model=DeletionReport,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a folder with all sub-folders, documents, files and vectors",
)
async def delete_folder(
    tenant_id: str, folder_id: str, deletion: DeletionDep
) -> DeletionReport:
    return await deletion.delete_folder_subtree(folder_id, tenant_id)


@router.delete(
    "/tenants/{tenant_id}",
    response_model=TenantTeardownReport,
    summary="Remove every folder, document, file and vector of a tenant",
)
async def teardown_tenant(tenant_id: str, deletion: DeletionDep) -> TenantTeardownReport:
    return await deletion.teardown_tenant(tenant_id)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    queue: IngestionQueue | None = getattr(request.app.state, "ingestion_queue", None)

    queue_info: dict[str, Any] = {}
    if queue is not None:
        queue_info = {"running": queue.is_running, "pending": queue.pending}

    critical_ok = providers.get("embedding", False) and providers.get("storage", False)
    workers_ok = bool(queue_info.get("running", False))
    if critical_ok and workers_ok:
        status = "healthy"
    elif workers_ok:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=request.app.version,
        providers=providers,
        ingestion_queue=queue_info,
    )

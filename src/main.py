"""Knowledge-base FastAPI application entry point.

Wires together all providers, services, and routes via dependency
injection.  Loads configuration from the environment and ``.env`` and
configures structured logging before anything else is built.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.pipeline.ingestion_queue import IngestionQueue
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.metadata.sqlite_metadata_store import SQLiteMetadataStore
from src.providers.storage.s3_storage_provider import S3StorageProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.deletion_service import DeletionService
from src.services.embedding_client import EmbeddingClient
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from src.services.retrieval_service import RetrievalService
from src.services.vector_store_manager import VectorStoreManager
from src.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    app_env=settings.app_env,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    # -- Providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    llm = OpenAILLMProvider(settings=app_settings)
    storage = S3StorageProvider(settings=app_settings)
    metadata_store = SQLiteMetadataStore(db_path=app_settings.metadata_db_path)
    vector_provider = ChromaDBProvider(persist_directory=app_settings.chromadb_persist_dir)
    cache = MemoryCacheProvider(
        max_size=app_settings.embedding_cache_max_size,
        ttl=app_settings.embedding_cache_ttl_seconds,
    )

    # -- Core services --
    embedding_client = EmbeddingClient(
        provider=embedding_provider,
        cache=cache,
        model=app_settings.openai_embedding_model,
        dimensions=app_settings.embedding_dimensions,
        inter_call_delay=app_settings.embedding_inter_call_delay,
    )
    vector_store = VectorStoreManager(
        provider=vector_provider,
        collection_prefix=app_settings.vector_collection_prefix,
        point_id_scheme=app_settings.point_id_scheme,
    )
    progress_tracker = ProgressTracker()
    ingestion_service = IngestionService(
        storage=storage,
        text_extractor=TextExtractor(),
        chunker=TextChunker(
            max_chunk_chars=app_settings.chunk_max_chars,
            overlap_chars=app_settings.chunk_overlap_chars,
        ),
        embedding_client=embedding_client,
        vector_store=vector_store,
        metadata_store=metadata_store,
        tracker=progress_tracker,
        tmp_dir=app_settings.ingestion_tmp_dir,
        max_chunk_chars=app_settings.chunk_max_chars,
        overlap_chars=app_settings.chunk_overlap_chars,
        upsert_concurrency=app_settings.vector_upsert_concurrency,
    )
    ingestion_queue = IngestionQueue(
        ingestion_service=ingestion_service,
        tracker=progress_tracker,
        metadata_store=metadata_store,
        workers=app_settings.ingestion_workers,
        max_queue_size=app_settings.ingestion_queue_size,
    )
    retrieval_service = RetrievalService(
        embedding_client=embedding_client,
        vector_store=vector_store,
        llm=llm,
        score_threshold=app_settings.retrieval_score_threshold,
        default_top_k=app_settings.retrieval_top_k,
    )
    deletion_service = DeletionService(
        metadata_store=metadata_store,
        storage=storage,
        vector_store=vector_store,
        storage_delete_concurrency=app_settings.storage_delete_concurrency,
    )

    provider_registry = {
        "embedding": embedding_provider.is_available(),
        "llm": llm.is_available(),
        "storage": True,
        "vector_store": True,
        "metadata_store": True,
    }

    return {
        "settings": app_settings,
        "metadata_store": metadata_store,
        "storage": storage,
        "vector_store": vector_store,
        "progress_tracker": progress_tracker,
        "ingestion_service": ingestion_service,
        "ingestion_queue": ingestion_queue,
        "retrieval_service": retrieval_service,
        "deletion_service": deletion_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build all components on startup; drain the worker pool on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["metadata_store"].initialize()
    await components["ingestion_queue"].start()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        providers=components["provider_registry"],
    )

    yield

    await components["ingestion_queue"].stop()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Knowledge Base API",
        version=_VERSION,
        description=(
            "Upload organization documents into per-tenant folders, search them "
            "semantically, ask grounded questions, and delete folder trees with "
            "their files and vectors."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )

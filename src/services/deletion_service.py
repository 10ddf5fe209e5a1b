"""Cascading deletion of folder subtrees and whole tenants.

Removing a folder has to clean up three independent backends (the
metadata store, the object store and the vector store) without any
cross-backend transaction.  The deletion is therefore run as a saga of
ordered steps, each recording a :class:`~src.models.deletion.SagaStepResult`:

1. ``collect_folders``  -- walk the active subtree, sibling branches
   concurrently.
2. ``find_documents``   -- every document in those folders, archived or not.
3. ``delete_files``     -- stored objects, concurrently; each failure becomes
   a :class:`~src.models.deletion.StorageDeletionWarning`.
4. ``delete_documents`` -- document rows, one bulk statement.
5. ``delete_vectors``   -- every point of those documents, one filtered
   delete on the tenant collection; a failure is recorded, not raised.
6. ``delete_folders``   -- folder rows, one bulk statement.

Metadata-store failures propagate: without the rows there is nothing
left to report against.  Object and vector failures leave orphans that
the returned :class:`~src.models.deletion.DeletionReport` lists.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.metadata_store import IMetadataStore
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.models.deletion import (
    DeletionReport,
    SagaStepResult,
    StorageDeletionWarning,
    TenantTeardownReport,
)
from src.models.documents import Document
from src.services.vector_store_manager import VectorStoreManager
from src.utils.concurrency import throttled_gather
from src.utils.errors import KnowledgeBaseError, NotFoundError, ValidationError

logger = structlog.get_logger(logger_name=__name__)


class DeletionService:
    """Deletes folder subtrees and tenants across all backends.

    Parameters
    ----------
    metadata_store:
        Folder and document records.
    storage:
        Object storage holding uploaded files.
    vector_store:
        Tenant-scoped vector collections.
    storage_delete_concurrency:
        Maximum concurrent object deletions.
    """

    def __init__(
        self,
        metadata_store: IMetadataStore,
        storage: IObjectStorageProvider,
        vector_store: VectorStoreManager,
        storage_delete_concurrency: int = 10,
    ) -> None:
        self._metadata_store = metadata_store
        self._storage = storage
        self._vector_store = vector_store
        self._storage_delete_concurrency = storage_delete_concurrency

    # ------------------------------------------------------------------
    # Folder subtree
    # ------------------------------------------------------------------

    async def delete_folder_subtree(self, folder_id: str, tenant_id: str) -> DeletionReport:
        """Delete *folder_id*, its descendants, their documents, files and vectors.

        Raises
        ------
        ValidationError
            If either id is empty.
        NotFoundError
            If the folder does not exist, is not active, or belongs to a
            different tenant.  Nothing has been touched in that case.
        """
        if not folder_id or not tenant_id:
            raise ValidationError("Folder id and tenant id are required")

        root = await self._metadata_store.get_folder(folder_id, tenant_id, active_only=True)
        if root is None:
            raise NotFoundError(f"Folder {folder_id} not found")

        log = logger.bind(folder_id=folder_id, tenant_id=tenant_id)
        steps: list[SagaStepResult] = []

        folder_ids = await self._collect_subtree(folder_id, tenant_id, {folder_id})
        steps.append(SagaStepResult(name="collect_folders", succeeded=True, affected=len(folder_ids)))

        documents = await self._metadata_store.find_documents_in_folders(folder_ids, tenant_id)
        steps.append(SagaStepResult(name="find_documents", succeeded=True, affected=len(documents)))

        files_deleted, warnings = await self._delete_files(documents)
        steps.append(
            SagaStepResult(
                name="delete_files",
                succeeded=not warnings,
                affected=files_deleted,
                error=f"{len(warnings)} file(s) could not be deleted" if warnings else None,
            )
        )

        documents_deleted = await self._metadata_store.delete_documents_in_folders(
            folder_ids, tenant_id
        )
        steps.append(
            SagaStepResult(name="delete_documents", succeeded=True, affected=documents_deleted)
        )

        vectors_deleted, vector_step = await self._delete_vectors(tenant_id, documents)
        steps.append(vector_step)

        folders_deleted = await self._metadata_store.delete_folders(folder_ids, tenant_id)
        steps.append(SagaStepResult(name="delete_folders", succeeded=True, affected=folders_deleted))

        report = DeletionReport(
            root_folder_id=folder_id,
            tenant_id=tenant_id,
            folders_deleted=folders_deleted,
            documents_deleted=documents_deleted,
            files_deleted=files_deleted,
            vectors_deleted=vectors_deleted,
            deleted_folder_ids=folder_ids,
            storage_errors=warnings,
            steps=steps,
        )
        log_method = log.warning if report.has_warnings else log.info
        log_method(
            "folder_subtree_deleted",
            folders=folders_deleted,
            documents=documents_deleted,
            files=files_deleted,
            vectors=vectors_deleted,
            storage_errors=len(warnings),
        )
        return report

    async def _collect_subtree(self, folder_id: str, tenant_id: str, seen: set[str]) -> list[str]:
        """Return *folder_id* followed by every active descendant.

        *seen* guards against cycles in corrupted data.
        """
        children = await self._metadata_store.list_child_folder_ids(folder_id, tenant_id)
        fresh = [child for child in children if child not in seen]
        seen.update(fresh)

        branches = await asyncio.gather(
            *(self._collect_subtree(child, tenant_id, seen) for child in fresh)
        )
        collected = [folder_id]
        for branch in branches:
            collected.extend(branch)
        return collected

    async def _delete_files(
        self, documents: list[Document]
    ) -> tuple[int, list[StorageDeletionWarning]]:
        by_key: dict[str, list[Document]] = {}
        warnings: list[StorageDeletionWarning] = []
        for document in documents:
            if not document.file_url:
                continue
            try:
                key = self._storage.key_from_locator(document.file_url)
            except KnowledgeBaseError as exc:
                logger.warning(
                    "stored_file_locator_invalid", document_id=document.id, error=str(exc)
                )
                warnings.append(
                    StorageDeletionWarning(
                        document_id=document.id,
                        document_name=document.name,
                        file_url=document.file_url,
                        error=str(exc),
                    )
                )
                continue
            by_key.setdefault(key, []).append(document)

        semaphore = asyncio.Semaphore(self._storage_delete_concurrency)
        keys = list(by_key)
        outcomes = await throttled_gather(
            [self._storage.delete(key) for key in keys], semaphore=semaphore
        )

        deleted = 0
        for key, outcome in zip(keys, outcomes):
            if not isinstance(outcome, BaseException):
                deleted += 1
                continue
            logger.warning("stored_file_delete_failed", key=key, error=str(outcome))
            warnings.extend(
                StorageDeletionWarning(
                    document_id=document.id,
                    document_name=document.name,
                    file_url=document.file_url,
                    error=str(outcome),
                )
                for document in by_key[key]
            )
        return deleted, warnings

    async def _delete_vectors(
        self, tenant_id: str, documents: list[Document]
    ) -> tuple[int, SagaStepResult]:
        document_ids = [document.id for document in documents]
        try:
            deleted = await self._vector_store.delete_document_points(tenant_id, document_ids)
        except KnowledgeBaseError as exc:
            logger.warning(
                "document_vectors_delete_failed",
                tenant_id=tenant_id,
                documents=len(document_ids),
                error=str(exc),
            )
            return 0, SagaStepResult(name="delete_vectors", succeeded=False, error=str(exc))
        return deleted, SagaStepResult(name="delete_vectors", succeeded=True, affected=deleted)

    # ------------------------------------------------------------------
    # Tenant teardown
    # ------------------------------------------------------------------

    async def teardown_tenant(self, tenant_id: str) -> TenantTeardownReport:
        """Remove everything *tenant_id* owns: vectors, stored files and records."""
        if not tenant_id:
            raise ValidationError("Tenant id is required")

        steps: list[SagaStepResult] = []

        collection_deleted = False
        try:
            collection_deleted = await self._vector_store.delete_collection(tenant_id)
            steps.append(
                SagaStepResult(
                    name="delete_collection", succeeded=True, affected=int(collection_deleted)
                )
            )
        except KnowledgeBaseError as exc:
            logger.warning("tenant_collection_delete_failed", tenant_id=tenant_id, error=str(exc))
            steps.append(SagaStepResult(name="delete_collection", succeeded=False, error=str(exc)))

        objects_deleted = 0
        object_errors: dict[str, str] = {}
        try:
            keys = await self._storage.list_by_prefix(f"{tenant_id}/")
        except KnowledgeBaseError as exc:
            logger.warning("tenant_objects_list_failed", tenant_id=tenant_id, error=str(exc))
            steps.append(SagaStepResult(name="delete_objects", succeeded=False, error=str(exc)))
        else:
            semaphore = asyncio.Semaphore(self._storage_delete_concurrency)
            outcomes = await throttled_gather(
                [self._storage.delete(key) for key in keys], semaphore=semaphore
            )
            for key, outcome in zip(keys, outcomes):
                if isinstance(outcome, BaseException):
                    object_errors[key] = str(outcome)
                else:
                    objects_deleted += 1
            steps.append(
                SagaStepResult(
                    name="delete_objects",
                    succeeded=not object_errors,
                    affected=objects_deleted,
                    error=(
                        f"{len(object_errors)} object(s) could not be deleted"
                        if object_errors
                        else None
                    ),
                )
            )

        folders_deleted, documents_deleted = await self._metadata_store.delete_tenant(tenant_id)
        steps.append(
            SagaStepResult(
                name="delete_records",
                succeeded=True,
                affected=folders_deleted + documents_deleted,
            )
        )

        logger.info(
            "tenant_torn_down",
            tenant_id=tenant_id,
            collection_deleted=collection_deleted,
            objects=objects_deleted,
            object_errors=len(object_errors),
            folders=folders_deleted,
            documents=documents_deleted,
        )
        return TenantTeardownReport(
            tenant_id=tenant_id,
            collection_deleted=collection_deleted,
            objects_deleted=objects_deleted,
            object_errors=object_errors,
            folders_deleted=folders_deleted,
            documents_deleted=documents_deleted,
            steps=steps,
        )

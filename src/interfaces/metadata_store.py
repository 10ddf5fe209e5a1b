"""Abstract base class for the folder / document metadata store.

The metadata store is the source of truth for whether a resource still
exists for the user.  It enforces sibling-name uniqueness on insert,
supports lookups by parent reference and bulk deletion by identifier set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.documents import Document, Folder, ProcessingStatus, ResourceStatus


# Concrete implementation: SQLiteMetadataStore (src/providers/metadata/)
class IMetadataStore(ABC):
    """Contract for persisting folders and documents per tenant."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indexes if they do not exist yet."""

    # -- Folders -------------------------------------------------------

    @abstractmethod
    async def create_folder(self, folder: Folder) -> Folder:
        """Insert a folder.

        Raises
        ------
        src.utils.errors.NotFoundError
            If the parent folder does not exist for the tenant.
        src.utils.errors.ValidationError
            If a sibling with the same name already exists.
        """

    @abstractmethod
    async def get_folder(
        self, folder_id: str, tenant_id: str, active_only: bool = True
    ) -> Folder | None:
        """Return the folder, or ``None`` if missing, foreign or inactive."""

    @abstractmethod
    async def list_child_folder_ids(self, parent_id: str, tenant_id: str) -> list[str]:
        """Return the ids of the active direct children of *parent_id*."""

    @abstractmethod
    async def set_folder_status(
        self, folder_id: str, tenant_id: str, status: ResourceStatus
    ) -> Folder:
        """Archive or re-activate a folder."""

    @abstractmethod
    async def move_folder(
        self, folder_id: str, tenant_id: str, new_parent_id: str | None
    ) -> Folder:
        """Re-parent a folder.

        Raises
        ------
        src.utils.errors.ValidationError
            If the move would make the folder its own ancestor or clash
            with a sibling name.
        """

    @abstractmethod
    async def delete_folders(self, folder_ids: list[str], tenant_id: str) -> int:
        """Bulk-delete folders; returns the number of rows removed."""

    # -- Documents -----------------------------------------------------

    @abstractmethod
    async def create_document(self, document: Document) -> Document:
        """Insert a document.

        Raises
        ------
        src.utils.errors.NotFoundError
            If the owning folder does not exist for the tenant.
        src.utils.errors.ValidationError
            If the folder already holds a document with the same name.
        """

    @abstractmethod
    async def get_document(self, document_id: str, tenant_id: str) -> Document | None:
        """Return the document or ``None``."""

    @abstractmethod
    async def find_documents_in_folders(
        self, folder_ids: list[str], tenant_id: str
    ) -> list[Document]:
        """Return every document (any status) whose folder is in *folder_ids*."""

    @abstractmethod
    async def delete_documents_in_folders(self, folder_ids: list[str], tenant_id: str) -> int:
        """Bulk-delete every document in *folder_ids*; returns rows removed."""

    @abstractmethod
    async def update_processing_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        detail: str | None = None,
    ) -> None:
        """Persist the latest ingestion outcome on a document."""

    # -- Tenant teardown -----------------------------------------------

    @abstractmethod
    async def delete_tenant(self, tenant_id: str) -> tuple[int, int]:
        """Delete every folder and document of a tenant.

        Returns
        -------
        tuple[int, int]
            ``(folders_deleted, documents_deleted)``.
        """

"""Cascading-deletion report models.

Deletion across the metadata store, the object store and the vector store
is executed as a saga: an ordered list of steps, each of which records its
own outcome.  The :class:`DeletionReport` is the authoritative record of
what one pass actually did; it is returned to the caller and never
persisted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SagaStepResult(BaseModel):
    """Outcome of one deletion step."""

    model_config = ConfigDict(frozen=True)

    name: str
    succeeded: bool
    affected: int = Field(default=0, ge=0, description="Items the step removed or found.")
    error: str | None = None


class StorageDeletionWarning(BaseModel):
    """A document whose record was removed but whose stored file was not.

    This is the consistency warning of the deletion pipeline: returned as
    data, never raised.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    document_name: str
    file_url: str
    error: str


class DeletionReport(BaseModel):
    """Result of deleting one folder subtree."""

    model_config = ConfigDict(frozen=True)

    root_folder_id: str
    tenant_id: str
    folders_deleted: int = Field(default=0, ge=0)
    documents_deleted: int = Field(default=0, ge=0)
    files_deleted: int = Field(default=0, ge=0)
    vectors_deleted: int = Field(default=0, ge=0)
    deleted_folder_ids: list[str] = Field(default_factory=list)
    storage_errors: list[StorageDeletionWarning] = Field(default_factory=list)
    steps: list[SagaStepResult] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        """True when any backend was left with orphaned data."""
        return bool(self.storage_errors) or any(not s.succeeded for s in self.steps)


class TenantTeardownReport(BaseModel):
    """Result of removing everything a tenant owns."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    collection_deleted: bool = False
    objects_deleted: int = Field(default=0, ge=0)
    object_errors: dict[str, str] = Field(
        default_factory=dict, description="Storage key -> error message."
    )
    folders_deleted: int = Field(default=0, ge=0)
    documents_deleted: int = Field(default=0, ge=0)
    steps: list[SagaStepResult] = Field(default_factory=list)

"""Folder and document records owned by the metadata store.

Folders form a per-tenant tree through ``parent_id`` edges (children are
looked up, never embedded).  Documents point at their owning folder and at
the stored file through ``file_url``, the object-storage locator.  Both are
immutable snapshots; the metadata store returns fresh instances after every
mutation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResourceStatus(str, Enum):
    """Lifecycle status shared by folders and documents."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    """Document formats the text extractor understands."""

    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> ContentType | None:
        """Map an upload MIME type to a content type, ``None`` if unsupported."""
        return _MIME_TYPES.get(mime_type.split(";")[0].strip().lower())

    @property
    def mime_type(self) -> str:
        return _CONTENT_TYPE_MIME[self]


_MIME_TYPES: dict[str, ContentType] = {
    "application/pdf": ContentType.PDF,
    "text/plain": ContentType.TXT,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ContentType.DOCX,
}
_CONTENT_TYPE_MIME: dict[ContentType, str] = {v: k for k, v in _MIME_TYPES.items()}


class ProcessingStatus(str, Enum):
    """Ingestion outcome persisted on the document record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"


class Folder(BaseModel):
    """A node in a tenant's folder tree."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique folder identifier.")
    tenant_id: str = Field(description="Owning tenant (organization).")
    name: str = Field(min_length=1, description="Name, unique among siblings.")
    parent_id: str | None = Field(default=None, description="Parent folder, None for roots.")
    created_by: str = Field(default="", description="User that created the folder.")
    status: ResourceStatus = ResourceStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_active(self) -> bool:
        return self.status == ResourceStatus.ACTIVE


class Document(BaseModel):
    """An uploaded file plus the metadata needed to ingest and delete it."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique document identifier.")
    tenant_id: str = Field(description="Owning tenant (organization).")
    folder_id: str = Field(description="Folder that contains the document.")
    name: str = Field(min_length=1, description="Name, unique within (folder, tenant).")
    content_type: ContentType
    file_url: str = Field(default="", description="Object-storage locator of the file.")
    size_bytes: int = Field(default=0, ge=0)
    uploaded_by: str = Field(default="")
    status: ResourceStatus = ResourceStatus.ACTIVE
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    processing_detail: str | None = Field(
        default=None, description="Error code or summary from the last ingestion."
    )
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_active(self) -> bool:
        return self.status == ResourceStatus.ACTIVE

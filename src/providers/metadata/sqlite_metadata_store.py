"""SQLite-backed folder and document metadata store.

Persists the per-tenant folder tree and document records to a local SQLite
database (``data/knowledge_base.db`` by default) using ``aiosqlite`` for
async I/O.  Sibling-name uniqueness is enforced by unique indexes, so a
duplicate insert surfaces as :class:`~src.utils.errors.ValidationError`.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.metadata_store import IMetadataStore
from src.models.documents import (
    ContentType,
    Document,
    Folder,
    ProcessingStatus,
    ResourceStatus,
)
from src.utils.errors import NotFoundError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge_base.db")

# SQLite caps bound parameters per statement; id sets are sent in slices.
_MAX_IDS_PER_STATEMENT = 500

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS folders (
    id          TEXT PRIMARY KEY,
    tenant_id   TEXT NOT NULL,
    name        TEXT NOT NULL,
    parent_id   TEXT,
    created_by  TEXT NOT NULL DEFAULT '',
    status      TEXT NOT NULL DEFAULT 'active',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS documents (
    id                 TEXT PRIMARY KEY,
    tenant_id          TEXT NOT NULL,
    folder_id          TEXT NOT NULL,
    name               TEXT NOT NULL,
    content_type       TEXT NOT NULL,
    file_url           TEXT NOT NULL DEFAULT '',
    size_bytes         INTEGER NOT NULL DEFAULT 0,
    uploaded_by        TEXT NOT NULL DEFAULT '',
    status             TEXT NOT NULL DEFAULT 'active',
    processing_status  TEXT NOT NULL DEFAULT 'pending',
    processing_detail  TEXT,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL,
    UNIQUE(tenant_id, folder_id, name)
);
""",
]

_CREATE_INDICES_SQL = [
    # Root folders have a NULL parent; COALESCE makes them collide by name too.
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_folders_sibling_name "
    "ON folders(tenant_id, COALESCE(parent_id, ''), name);",
    "CREATE INDEX IF NOT EXISTS idx_folders_parent ON folders(tenant_id, parent_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_folder ON documents(tenant_id, folder_id);",
]

_INSERT_FOLDER_SQL = """\
INSERT INTO folders (id, tenant_id, name, parent_id, created_by, status, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_DOCUMENT_SQL = """\
INSERT INTO documents (
    id, tenant_id, folder_id, name, content_type, file_url, size_bytes,
    uploaded_by, status, processing_status, processing_detail, created_at, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_FOLDER_COLUMNS = "id, tenant_id, name, parent_id, created_by, status, created_at, updated_at"
_DOCUMENT_COLUMNS = (
    "id, tenant_id, folder_id, name, content_type, file_url, size_bytes, uploaded_by, "
    "status, processing_status, processing_detail, created_at, updated_at"
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _batched(ids: list[str]) -> Iterator[list[str]]:
    unique = list(dict.fromkeys(ids))
    for start in range(0, len(unique), _MAX_IDS_PER_STATEMENT):
        yield unique[start : start + _MAX_IDS_PER_STATEMENT]


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _row_to_folder(row: Any) -> Folder:
    r = dict(row)
    return Folder(
        id=r["id"],
        tenant_id=r["tenant_id"],
        name=r["name"],
        parent_id=r["parent_id"],
        created_by=r["created_by"],
        status=ResourceStatus(r["status"]),
        created_at=datetime.fromisoformat(r["created_at"]),
        updated_at=datetime.fromisoformat(r["updated_at"]),
    )


def _row_to_document(row: Any) -> Document:
    r = dict(row)
    return Document(
        id=r["id"],
        tenant_id=r["tenant_id"],
        folder_id=r["folder_id"],
        name=r["name"],
        content_type=ContentType(r["content_type"]),
        file_url=r["file_url"],
        size_bytes=r["size_bytes"],
        uploaded_by=r["uploaded_by"],
        status=ResourceStatus(r["status"]),
        processing_status=ProcessingStatus(r["processing_status"]),
        processing_detail=r["processing_detail"],
        created_at=datetime.fromisoformat(r["created_at"]),
        updated_at=datetime.fromisoformat(r["updated_at"]),
    )


class SQLiteMetadataStore(IMetadataStore):
    """SQLite-backed folder / document persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("metadata_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(self, folder: Folder) -> Folder:
        if folder.parent_id is not None:
            if folder.parent_id == folder.id:
                raise ValidationError(f"Folder {folder.id} cannot be its own parent")
            parent = await self.get_folder(folder.parent_id, folder.tenant_id)
            if parent is None:
                raise NotFoundError(f"Parent folder {folder.parent_id} not found")

        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.execute(
                    _INSERT_FOLDER_SQL,
                    (
                        folder.id,
                        folder.tenant_id,
                        folder.name,
                        folder.parent_id,
                        folder.created_by,
                        folder.status.value,
                        folder.created_at.isoformat(),
                        folder.updated_at.isoformat(),
                    ),
                )
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                raise ValidationError(
                    f"A folder named {folder.name!r} already exists in this location"
                ) from exc

        logger.info(
            "folder_created",
            folder_id=folder.id,
            tenant_id=folder.tenant_id,
            parent_id=folder.parent_id,
        )
        return folder

    async def get_folder(
        self, folder_id: str, tenant_id: str, active_only: bool = True
    ) -> Folder | None:
        sql = f"SELECT {_FOLDER_COLUMNS} FROM folders WHERE id = ? AND tenant_id = ?"
        params: list[Any] = [folder_id, tenant_id]
        if active_only:
            sql += " AND status = ?"
            params.append(ResourceStatus.ACTIVE.value)

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return _row_to_folder(row) if row else None

    async def list_child_folder_ids(self, parent_id: str, tenant_id: str) -> list[str]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT id FROM folders WHERE parent_id = ? AND tenant_id = ? AND status = ? "
                "ORDER BY created_at, id",
                (parent_id, tenant_id, ResourceStatus.ACTIVE.value),
            )
            rows = await cursor.fetchall()
        return [r[0] for r in rows]

    async def set_folder_status(
        self, folder_id: str, tenant_id: str, status: ResourceStatus
    ) -> Folder:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "UPDATE folders SET status = ?, updated_at = ? WHERE id = ? AND tenant_id = ?",
                (status.value, _now_iso(), folder_id, tenant_id),
            )
            await db.commit()
            updated = cursor.rowcount
        if not updated:
            raise NotFoundError(f"Folder {folder_id} not found")

        folder = await self.get_folder(folder_id, tenant_id, active_only=False)
        assert folder is not None
        logger.info("folder_status_changed", folder_id=folder_id, status=status.value)
        return folder

    async def move_folder(
        self, folder_id: str, tenant_id: str, new_parent_id: str | None
    ) -> Folder:
        folder = await self.get_folder(folder_id, tenant_id, active_only=False)
        if folder is None:
            raise NotFoundError(f"Folder {folder_id} not found")

        if new_parent_id is not None:
            await self._ensure_not_descendant(folder_id, new_parent_id, tenant_id)

        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.execute(
                    "UPDATE folders SET parent_id = ?, updated_at = ? "
                    "WHERE id = ? AND tenant_id = ?",
                    (new_parent_id, _now_iso(), folder_id, tenant_id),
                )
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                raise ValidationError(
                    f"A folder named {folder.name!r} already exists in the target location"
                ) from exc

        moved = await self.get_folder(folder_id, tenant_id, active_only=False)
        assert moved is not None
        logger.info("folder_moved", folder_id=folder_id, new_parent_id=new_parent_id)
        return moved

    async def _ensure_not_descendant(
        self, folder_id: str, new_parent_id: str, tenant_id: str
    ) -> None:
        """Walk up from *new_parent_id*; reaching *folder_id* means a cycle."""
        seen: set[str] = set()
        current: str | None = new_parent_id
        while current is not None:
            if current == folder_id:
                raise ValidationError(
                    f"Folder {folder_id} cannot be moved into its own subtree"
                )
            if current in seen:
                break
            seen.add(current)
            ancestor = await self.get_folder(current, tenant_id, active_only=False)
            if ancestor is None:
                if current == new_parent_id:
                    raise NotFoundError(f"Target folder {new_parent_id} not found")
                break
            current = ancestor.parent_id

    async def delete_folders(self, folder_ids: list[str], tenant_id: str) -> int:
        deleted = 0
        async with aiosqlite.connect(str(self._db_path)) as db:
            for batch in _batched(folder_ids):
                cursor = await db.execute(
                    f"DELETE FROM folders WHERE tenant_id = ? AND id IN ({_placeholders(len(batch))})",
                    (tenant_id, *batch),
                )
                deleted += cursor.rowcount
            await db.commit()
        return deleted

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, document: Document) -> Document:
        folder = await self.get_folder(document.folder_id, document.tenant_id)
        if folder is None:
            raise NotFoundError(f"Folder {document.folder_id} not found")

        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.execute(
                    _INSERT_DOCUMENT_SQL,
                    (
                        document.id,
                        document.tenant_id,
                        document.folder_id,
                        document.name,
                        document.content_type.value,
                        document.file_url,
                        document.size_bytes,
                        document.uploaded_by,
                        document.status.value,
                        document.processing_status.value,
                        document.processing_detail,
                        document.created_at.isoformat(),
                        document.updated_at.isoformat(),
                    ),
                )
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                raise ValidationError(
                    f"A document named {document.name!r} already exists in this folder"
                ) from exc

        logger.info(
            "document_created",
            document_id=document.id,
            tenant_id=document.tenant_id,
            folder_id=document.folder_id,
        )
        return document

    async def get_document(self, document_id: str, tenant_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ? AND tenant_id = ?",
                (document_id, tenant_id),
            )
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def find_documents_in_folders(
        self, folder_ids: list[str], tenant_id: str
    ) -> list[Document]:
        documents: list[Document] = []
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            for batch in _batched(folder_ids):
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
                    f"WHERE tenant_id = ? "
                    f"AND folder_id IN ({_placeholders(len(batch))}) ORDER BY created_at, id",
                    (tenant_id, *batch),
                )
                documents.extend(_row_to_document(r) for r in await cursor.fetchall())
        return documents

    async def delete_documents_in_folders(self, folder_ids: list[str], tenant_id: str) -> int:
        deleted = 0
        async with aiosqlite.connect(str(self._db_path)) as db:
            for batch in _batched(folder_ids):
                cursor = await db.execute(
                    f"DELETE FROM documents WHERE tenant_id = ? "
                    f"AND folder_id IN ({_placeholders(len(batch))})",
                    (tenant_id, *batch),
                )
                deleted += cursor.rowcount
            await db.commit()
        return deleted

    async def update_processing_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        detail: str | None = None,
    ) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "UPDATE documents SET processing_status = ?, processing_detail = ?, "
                "updated_at = ? WHERE id = ?",
                (status.value, detail, _now_iso(), document_id),
            )
            await db.commit()
        logger.debug(
            "document_processing_status_updated",
            document_id=document_id,
            status=status.value,
        )

    # ------------------------------------------------------------------
    # Tenant teardown
    # ------------------------------------------------------------------

    async def delete_tenant(self, tenant_id: str) -> tuple[int, int]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            doc_cursor = await db.execute("DELETE FROM documents WHERE tenant_id = ?", (tenant_id,))
            folder_cursor = await db.execute("DELETE FROM folders WHERE tenant_id = ?", (tenant_id,))
            await db.commit()
            result = (folder_cursor.rowcount, doc_cursor.rowcount)
        logger.info(
            "tenant_metadata_deleted",
            tenant_id=tenant_id,
            folders_deleted=result[0],
            documents_deleted=result[1],
        )
        return result

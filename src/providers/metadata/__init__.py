"""Metadata store implementations (folders and documents).

SQLiteMetadataStore persists the per-tenant folder tree and document records
via aiosqlite.
"""

from src.providers.metadata.sqlite_metadata_store import SQLiteMetadataStore

__all__ = ["SQLiteMetadataStore"]

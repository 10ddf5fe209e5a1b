"""Abstract base class for object storage services.

Stored files are addressed two ways: by *key* (the bucket-relative path,
``"{tenant}/{uploader}/{timestamp}-{name}"``) and by *locator*, the URL the
metadata store keeps on each document.  The locator's path component,
once URL-decoded, is the key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: S3StorageProvider (src/providers/storage/)
class IObjectStorageProvider(ABC):
    """Contract for a flat key-value object store."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store *data* under *key* and return its locator.

        Raises
        ------
        src.utils.errors.StorageError
            If the upload fails.
        """

    @abstractmethod
    async def get(self, locator: str) -> bytes:
        """Download the object addressed by *locator*.

        Raises
        ------
        src.utils.errors.NotFoundError
            If no object exists at the locator.
        src.utils.errors.StorageError
            If the download fails for any other reason.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the object stored under *key*.

        Raises
        ------
        src.utils.errors.StorageError
            If the deletion fails.
        """

    @abstractmethod
    async def list_by_prefix(self, prefix: str) -> list[str]:
        """Return every key starting with *prefix*."""

    @abstractmethod
    def key_from_locator(self, locator: str) -> str:
        """Return the storage key a locator points at."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider (e.g. ``"s3"``)."""

"""Object storage provider implementations.

S3StorageProvider stores uploaded files in one S3 bucket (or any
S3-compatible endpoint via ``S3_ENDPOINT_URL``).
"""

from src.providers.storage.s3_storage_provider import (
    S3StorageProvider,
    build_upload_key,
    extract_storage_key,
)

__all__ = ["S3StorageProvider", "build_upload_key", "extract_storage_key"]

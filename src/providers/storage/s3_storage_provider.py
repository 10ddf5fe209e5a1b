"""Amazon S3 object storage provider adapter.

Wraps a ``boto3`` S3 client to implement :class:`IObjectStorageProvider`.
Uploaded files are addressed by virtual-hosted-style URLs
(``https://{bucket}.s3.{region}.amazonaws.com/{key}``), which is what the
metadata store keeps as each document's ``file_url``.  boto3 is blocking,
so every call runs in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote, unquote, urlparse

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.config.settings import Settings
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.utils.errors import ConfigurationError, NotFoundError, StorageError, ValidationError
from src.utils.text_normalizer import sanitize_filename

logger = structlog.get_logger(logger_name=__name__)

_MISSING_KEY_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def build_upload_key(
    tenant_id: str,
    uploader_id: str,
    filename: str,
    timestamp: datetime | None = None,
) -> str:
    """Return the storage key for a new upload.

    ``"{tenant}/{uploader}/{epoch_millis}-{sanitised_name}"``: the tenant
    prefix keeps every tenant's objects listable (and deletable) as a group.
    """
    moment = timestamp or datetime.now(timezone.utc)
    millis = int(moment.timestamp() * 1000)
    return f"{tenant_id}/{uploader_id}/{millis}-{sanitize_filename(filename)}"


def extract_storage_key(locator: str) -> str:
    """Return the object key a locator URL points at.

    The URL path is percent-decoded.  For path-style hosts
    (``s3.amazonaws.com/{bucket}/{key}``) the leading bucket segment is
    dropped.  A bare key (no scheme) is returned unchanged.

    Raises
    ------
    ValidationError
        If the locator cannot be parsed or names no key.
    """
    try:
        parsed = urlparse(locator)
    except ValueError as exc:
        raise ValidationError(f"Malformed storage locator {locator!r}: {exc}") from exc
    if not parsed.scheme or not parsed.netloc:
        key = unquote(locator).lstrip("/")
    else:
        key = unquote(parsed.path).lstrip("/")
        if parsed.netloc.startswith("s3.") or parsed.netloc.startswith("s3-"):
            _, _, key = key.partition("/")
    if not key:
        raise ValidationError(f"Storage locator {locator!r} names no object key")
    return key


class S3StorageProvider(IObjectStorageProvider):
    """Object storage backed by a single S3 bucket."""

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        if not settings.aws_bucket_name:
            raise ConfigurationError(
                message="AWS_BUCKET_NAME is required for S3 storage",
                provider_name="s3",
            )
        self._bucket = settings.aws_bucket_name
        self._region = settings.aws_region
        if client is None:
            client_kwargs: dict[str, Any] = {"region_name": settings.aws_region}
            if settings.aws_access_key_id and settings.aws_secret_access_key:
                client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
                client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
            if settings.s3_endpoint_url:
                client_kwargs["endpoint_url"] = settings.s3_endpoint_url
            client = boto3.client("s3", **client_kwargs)
        self._client = client

    def locator_for(self, key: str) -> str:
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{quote(key)}"

    # ------------------------------------------------------------------
    # IObjectStorageProvider implementation
    # ------------------------------------------------------------------

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(
                message=f"S3 upload failed for {key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("s3_object_stored", key=key, size_bytes=len(data))
        return self.locator_for(key)

    async def get(self, locator: str) -> bytes:
        key = self.key_from_locator(locator)
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self._bucket, Key=key
            )
            body = response["Body"]
            try:
                return await asyncio.to_thread(body.read)
            finally:
                body.close()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _MISSING_KEY_CODES:
                raise NotFoundError(
                    message=f"Stored file not found: {key}",
                    provider_name=self.get_provider_name(),
                ) from exc
            raise StorageError(
                message=f"S3 download failed for {key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except BotoCoreError as exc:
            raise StorageError(
                message=f"S3 download failed for {key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(
                message=f"S3 delete failed for {key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("s3_object_deleted", key=key)

    async def list_by_prefix(self, prefix: str) -> list[str]:
        def _list() -> list[str]:
            paginator = self._client.get_paginator("list_objects_v2")
            keys: list[str] = []
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            return keys

        try:
            return await asyncio.to_thread(_list)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(
                message=f"S3 list failed for prefix {prefix}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def key_from_locator(self, locator: str) -> str:
        return extract_storage_key(locator)

    def get_provider_name(self) -> str:
        return "s3"

"""Object storage interface and implementations."""

from __future__ import annotations

import abc
import asyncio
import logging
import mimetypes
import typing as t
from pathlib import Path

import pydantic as p
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from rubricate.errors import NotFoundError, PayloadTooLargeError

logger = logging.getLogger(__name__)


class ObjectInfo(p.BaseModel):
    """Result of probing an object without downloading it."""

    model_config = p.ConfigDict(frozen=True)

    exists: bool
    # Size in bytes, when the object exists
    size: int | None = None
    content_type: str | None = None


class ObjectStore(abc.ABC):
    """Abstract base class for object storage."""

    scheme: t.ClassVar[str]

    @abc.abstractmethod
    async def fetch(self, bucket: str, key: str, limit: int | None = None) -> bytes:
        """Download an object.

        Args:
            bucket: The bucket (namespace) holding the object.
            key: The storage key of the object.
            limit: Largest acceptable size in bytes, None for no limit.

        Raises:
            NotFoundError: the bucket or the key does not exist.
            PayloadTooLargeError: the object is larger than ``limit``.
        """
        ...

    @abc.abstractmethod
    async def head(self, bucket: str, key: str) -> ObjectInfo:
        """Probe an object; absent objects report ``exists=False``."""
        ...

    @abc.abstractmethod
    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Store an object.

        Returns:
            The reference of the stored object, ``scheme://bucket/key``.
        """
        ...

    @abc.abstractmethod
    async def delete(self, bucket: str, key: str) -> bool:
        """Delete an object.

        Returns:
            True if deleted, False if not found.
        """
        ...

    def reference(self, bucket: str, key: str) -> str:
        return f"{self.scheme}://{bucket}/{key}"


class LocalObjectStore(ObjectStore):
    """Local filesystem implementation for development; objects live at ``base_path/bucket/key``."""

    scheme = "local"

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path

        # Ensure base directory exists
        self._base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, bucket: str, key: str) -> Path:
        path = (self._base_path / bucket / key).resolve()
        if not path.is_relative_to(self._base_path.resolve()):
            raise NotFoundError(f"key {key!r} escapes the storage root")
        return path

    async def fetch(self, bucket: str, key: str, limit: int | None = None) -> bytes:
        if not (self._base_path / bucket).is_dir():
            raise NotFoundError(f"bucket {bucket!r} does not exist")

        file_path = self._path(bucket, key)
        if not file_path.is_file():
            raise NotFoundError(f"object {key!r} does not exist in bucket {bucket!r}")

        size = file_path.stat().st_size
        if limit is not None and size > limit:
            raise PayloadTooLargeError(size, limit)

        return file_path.read_bytes()

    async def head(self, bucket: str, key: str) -> ObjectInfo:
        file_path = self._path(bucket, key)
        if not file_path.is_file():
            return ObjectInfo(exists=False)

        content_type, _ = mimetypes.guess_type(file_path.name)
        return ObjectInfo(
            exists=True,
            size=file_path.stat().st_size,
            content_type=content_type or "application/octet-stream",
        )

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        file_path = self._path(bucket, key)

        # Ensure parent directories exist
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)

        return self.reference(bucket, key)

    async def delete(self, bucket: str, key: str) -> bool:
        file_path = self._path(bucket, key)

        if file_path.exists():
            file_path.unlink()
            return True

        return False


class S3ObjectStore(ObjectStore):
    """S3 implementation; the blocking boto3 client runs in worker threads."""

    scheme = "s3"

    NotFoundCodes = frozenset({"NoSuchKey", "NoSuchBucket", "404", "NotFound"})

    def __init__(self, client: BaseClient) -> None:
        self._client = client

    def _is_not_found(self, e: ClientError) -> bool:
        return e.response.get("Error", {}).get("Code") in self.NotFoundCodes

    def _fetch(self, bucket: str, key: str, limit: int | None) -> bytes:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if self._is_not_found(e):
                raise NotFoundError(f"object {key!r} not found in bucket {bucket!r}") from e
            raise

        body = response["Body"]
        try:
            # reject on the declared length before reading the body
            declared = response.get("ContentLength")
            if limit is not None and declared is not None and declared > limit:
                raise PayloadTooLargeError(declared, limit)

            data = body.read()
        finally:
            body.close()

        if limit is not None and len(data) > limit:
            raise PayloadTooLargeError(len(data), limit)
        return data

    async def fetch(self, bucket: str, key: str, limit: int | None = None) -> bytes:
        logger.debug("fetching object", extra={"bucket": bucket, "key": key})
        return await asyncio.to_thread(self._fetch, bucket, key, limit)

    def _head(self, bucket: str, key: str) -> ObjectInfo:
        try:
            response = self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if self._is_not_found(e):
                return ObjectInfo(exists=False)
            raise
        return ObjectInfo(
            exists=True,
            size=response.get("ContentLength"),
            content_type=response.get("ContentType"),
        )

    async def head(self, bucket: str, key: str) -> ObjectInfo:
        return await asyncio.to_thread(self._head, bucket, key)

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        await asyncio.to_thread(
            self._client.put_object,
            Bucket=bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        logger.info("stored object", extra={"bucket": bucket, "key": key, "size": len(data)})
        return self.reference(bucket, key)

    async def delete(self, bucket: str, key: str) -> bool:
        # DeleteObject succeeds for absent keys, so look the key up first
        info = await self.head(bucket, key)
        if not info.exists:
            return False
        await asyncio.to_thread(self._client.delete_object, Bucket=bucket, Key=key)
        return True

"""Object storage for rendered assets.

``put`` stores bytes under ``{key_prefix}/{uuid}{ext}`` and returns the
public URI of the object. Two backends are available:

- ``LocalObjectStorage``: files under ``STORAGE_LOCAL_PATH``, served by the
  API under ``/media``
- ``S3ObjectStorage``: any S3-compatible bucket (AWS, R2, MinIO) via boto3
"""

import asyncio
import mimetypes
import os
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Any
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from scene_studio.config import settings
from scene_studio.logging import get_logger

logger = get_logger(__name__)


def build_object_key(key_prefix: str, content_type: str, filename: str | None = None) -> str:
    """Unique object key keeping the extension of ``filename`` or the content type."""
    ext = Path(filename).suffix if filename else ""
    if not ext:
        ext = mimetypes.guess_extension(content_type) or ""
    return f"{key_prefix.strip('/')}/{uuid4()}{ext}"


class ObjectStorage(ABC):
    """Durable object storage with public URIs."""

    def __init__(self, public_base_url: str | None = None) -> None:
        self.public_base_url = (public_base_url or settings.storage_public_base_url).rstrip("/")

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def put(
        self,
        data: bytes,
        content_type: str,
        key_prefix: str,
        filename: str | None = None,
    ) -> str:
        """Store ``data`` and return its public URI."""
        ...

    def public_uri(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def health_check(self) -> bool:
        return True


class LocalObjectStorage(ObjectStorage):
    """Objects written below a local directory."""

    def __init__(self, base_path: Path | None = None, public_base_url: str | None = None) -> None:
        super().__init__(public_base_url)
        self.base_path = base_path or Path(settings.storage_local_path)

    @property
    def name(self) -> str:
        return "local"

    async def put(
        self,
        data: bytes,
        content_type: str,
        key_prefix: str,
        filename: str | None = None,
    ) -> str:
        key = build_object_key(key_prefix, content_type, filename)
        file_path = self.base_path / key
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)

        logger.info("storage_object_written", backend=self.name, key=key, size=len(data))
        return self.public_uri(key)

    async def health_check(self) -> bool:
        """The base directory exists (or can be created) and is writable."""
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("storage_health_check_failed", backend=self.name, error=str(e))
            return False
        return os.access(self.base_path, os.W_OK)


class S3ObjectStorage(ObjectStorage):
    """Objects uploaded to an S3-compatible bucket."""

    def __init__(
        self,
        bucket: str | None = None,
        client: Any = None,
        public_base_url: str | None = None,
    ) -> None:
        super().__init__(public_base_url)
        self.bucket = bucket or settings.s3_bucket
        if not self.bucket:
            raise ValueError("S3 bucket not configured")
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=settings.s3_endpoint_url,
                aws_access_key_id=settings.s3_access_key_id,
                aws_secret_access_key=settings.s3_secret_access_key,
                region_name=settings.s3_region,
            )
        return self._client

    @property
    def name(self) -> str:
        return "s3"

    async def put(
        self,
        data: bytes,
        content_type: str,
        key_prefix: str,
        filename: str | None = None,
    ) -> str:
        key = build_object_key(key_prefix, content_type, filename)

        # boto3 is blocking
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            lambda: self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            ),
        )

        logger.info("storage_object_uploaded", backend=self.name, bucket=self.bucket, key=key, size=len(data))
        return self.public_uri(key)

    async def health_check(self) -> bool:
        """The bucket exists and the credentials can reach it."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, lambda: self.client.head_bucket(Bucket=self.bucket))
        except (BotoCoreError, ClientError) as e:
            logger.error("storage_health_check_failed", backend=self.name, bucket=self.bucket, error=str(e))
            return False
        return True


@lru_cache
def get_object_storage() -> ObjectStorage:
    """Get the configured storage backend."""
    if settings.storage_backend == "s3":
        return S3ObjectStorage()
    return LocalObjectStorage()

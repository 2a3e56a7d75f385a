# =============================================================================
# Object Storage - S3 (and S3-compatible endpoints)
# =============================================================================
#
# Holds the raw bytes of every uploaded filing. The database stores only the
# object key and a URL; the bytes are read back when a document registered
# through POST /api/documents needs extracting.
#
# ARCHITECTURE:
#   ObjectStore (Protocol)
#   └── S3ObjectStore      - boto3 client (AWS S3, MinIO, R2, ...)
#       ├── put()/get()/delete() - async, boto3 runs in asyncio.to_thread()
#       ├── url_for()            - public URL for a key
#       └── key_from_url()       - inverse of url_for (also accepts s3://)
#
# boto3 is synchronous, so every network call is pushed to a worker thread to
# keep the event loop free. botocore retries are disabled (one attempt):
# storage failures surface to the caller as retryable errors instead.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Protocol
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from filing_qa.config import settings
from filing_qa.errors import NotFoundError, UpstreamServiceError

logger = logging.getLogger(__name__)

# Suppress noisy per-request botocore logs
logging.getLogger("botocore").setLevel(logging.WARNING)


class ObjectStore(Protocol):
    """Protocol defining the object storage interface."""

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        ...

    async def get(self, key: str) -> bytes:
        ...

    async def delete(self, key: str) -> None:
        ...

    def url_for(self, key: str) -> str:
        ...

    def key_from_url(self, url: str) -> str | None:
        ...


class S3ObjectStore:
    """S3 implementation of ObjectStore."""

    def __init__(
        self,
        bucket_name: str | None = None,
        client=None,
    ) -> None:
        self.bucket_name = bucket_name or settings.s3_bucket_name
        self._region = settings.aws_region
        self._endpoint_url = settings.aws_endpoint_url

        self._client = client or boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=self._region,
            endpoint_url=self._endpoint_url,
            config=Config(
                connect_timeout=settings.storage_timeout_seconds,
                read_timeout=settings.storage_timeout_seconds,
                retries={"total_max_attempts": 1},
            ),
        )

        logger.info(
            "Initialized S3ObjectStore (bucket=%s, endpoint=%s)",
            self.bucket_name,
            self._endpoint_url or "aws",
        )

    def ensure_bucket(self) -> None:
        """
        Create the bucket if it doesn't exist.

        Raises:
            UpstreamServiceError: the storage endpoint cannot be reached.
        """
        try:
            self._client.head_bucket(Bucket=self.bucket_name)
            return
        except ClientError:
            pass
        except BotoCoreError as e:
            logger.error("S3 endpoint unreachable for bucket %s: %s", self.bucket_name, e)
            raise _as_upstream_error("connect", e) from e

        try:
            if self._region == "us-east-1":
                self._client.create_bucket(Bucket=self.bucket_name)
            else:
                self._client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={"LocationConstraint": self._region},
                )
            logger.info("Created S3 bucket: %s", self.bucket_name)
        except ClientError as e:
            logger.error("Failed to create bucket %s: %s", self.bucket_name, e)
        except BotoCoreError as e:
            logger.error("Failed to create bucket %s: %s", self.bucket_name, e)
            raise _as_upstream_error("connect", e) from e

    # -------------------------------------------------------------------------
    # Bytes
    # -------------------------------------------------------------------------

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise _as_upstream_error("upload", e) from e

        logger.info("Uploaded to S3: s3://%s/%s (%d bytes)", self.bucket_name, key, len(data))

    async def get(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self.bucket_name, Key=key,
            )
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise NotFoundError(f"Stored file '{key}' does not exist.") from e
            logger.error("S3 download failed for %s: %s", key, e)
            raise _as_upstream_error("download", e) from e
        except BotoCoreError as e:
            logger.error("S3 download failed for %s: %s", key, e)
            raise _as_upstream_error("download", e) from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self.bucket_name, Key=key,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 delete failed for %s: %s", key, e)
            raise _as_upstream_error("delete", e) from e

        logger.info("Deleted from S3: %s", key)

    # -------------------------------------------------------------------------
    # Addressing
    # -------------------------------------------------------------------------

    def url_for(self, key: str) -> str:
        """
        Public URL for a key.

        Path-style for custom endpoints (MinIO does not do virtual hosts),
        virtual-hosted style for AWS.
        """
        quoted = quote(key)
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self.bucket_name}/{quoted}"
        return f"https://{self.bucket_name}.s3.{self._region}.amazonaws.com/{quoted}"

    def key_from_url(self, url: str) -> str | None:
        """
        Recover the object key from a URL pointing into this bucket.

        Accepts `s3://bucket/key` and anything url_for() produces.
        Returns None for URLs outside the bucket.
        """
        parsed = urlparse(url)
        path = unquote(parsed.path).lstrip("/")

        if parsed.scheme == "s3":
            if parsed.netloc != self.bucket_name:
                return None
            return path or None

        if parsed.scheme not in ("http", "https"):
            return None

        if self._endpoint_url:
            endpoint = urlparse(self._endpoint_url)
            if parsed.netloc != endpoint.netloc:
                return None
            prefix = f"{self.bucket_name}/"
            if not path.startswith(prefix):
                return None
            return path[len(prefix):] or None

        if parsed.netloc.startswith(f"{self.bucket_name}.s3."):
            return path or None
        return None


def _as_upstream_error(operation: str, exc: Exception) -> UpstreamServiceError:
    timeout = isinstance(exc, (ConnectTimeoutError, ReadTimeoutError))
    return UpstreamServiceError(
        f"Object storage {operation} failed: {exc}",
        service="storage",
        timeout=timeout,
    )


# Lazy singleton - boto3 clients are thread-safe and expensive to create
_store: S3ObjectStore | None = None


def get_object_store() -> S3ObjectStore:
    """
    FastAPI dependency returning the configured object store.

    The store is cached only once its bucket check succeeded, so an
    unreachable endpoint is retried on the next request.
    """
    global _store
    if _store is None:
        store = S3ObjectStore()
        store.ensure_bucket()
        _store = store
    return _store

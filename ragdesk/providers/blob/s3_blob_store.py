"""S3-compatible blob store (AWS S3 or MinIO).

``boto3`` is synchronous, so every call runs in a worker thread via
``asyncio.to_thread``.  MinIO needs path-style addressing, which is
enabled whenever a custom endpoint is configured.
"""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

import boto3
import structlog
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from ragdesk.config.settings import Settings
from ragdesk.interfaces.blob_store import BlobRef, IBlobStore
from ragdesk.utils.concurrency import call_with_timeout
from ragdesk.utils.errors import BlobStoreError

logger = structlog.get_logger(logger_name=__name__)


class S3BlobStore(IBlobStore):
    """Blob store backed by one S3 bucket.

    Parameters
    ----------
    client:
        A ``boto3`` S3 client.
    bucket:
        Bucket holding every uploaded document.
    timeout:
        Deadline in seconds for each call; ``None`` disables it.
    """

    def __init__(self, client: Any, bucket: str, timeout: float | None = None) -> None:
        self._client = client
        self._bucket = bucket
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> S3BlobStore:
        client = boto3.client(
            "s3",
            endpoint_url=settings.minio_endpoint or None,
            aws_access_key_id=settings.minio_access_key or None,
            aws_secret_access_key=settings.minio_secret_key or None,
            region_name=settings.minio_region,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        return cls(client=client, bucket=settings.minio_bucket, timeout=settings.external_call_timeout)

    # ------------------------------------------------------------------
    # IBlobStore implementation
    # ------------------------------------------------------------------

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> BlobRef:
        # S3 user metadata must be ASCII.
        safe_metadata = {k: quote(v, safe=" .:-_/@") for k, v in (metadata or {}).items()}
        response = await self._run(
            "put_object",
            self._client.put_object,
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            Metadata=safe_metadata,
        )
        etag = (response or {}).get("ETag", "").strip('"')
        if not etag:
            raise BlobStoreError(
                message=f"Upload of '{key}' returned no ETag",
                provider_name=self.get_provider_name(),
            )
        logger.info("s3_put", key=key, size=len(data), content_type=content_type)
        return BlobRef(key=key, etag=etag)

    async def get(self, key: str) -> bytes:
        return await self._run("get_object", self._get_sync, key)

    async def delete(self, key: str) -> None:
        await self._run("delete_object", self._client.delete_object, Bucket=self._bucket, Key=key)
        logger.info("s3_delete", key=key)

    async def presign(self, key: str, ttl_seconds: int = 300) -> str:
        return await self._run(
            "generate_presigned_url",
            self._client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=ttl_seconds,
        )

    def get_provider_name(self) -> str:
        return "s3"

    # -- Sync helpers (executed via asyncio.to_thread) -------------------

    def _get_sync(self, key: str) -> bytes:
        response = self._client.get_object(Bucket=self._bucket, Key=key)
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    async def _run(self, operation: str, fn, *args: Any, **kwargs: Any) -> Any:  # noqa: ANN001
        try:
            return await call_with_timeout(
                asyncio.to_thread(fn, *args, **kwargs),
                self._timeout,
                lambda msg: BlobStoreError(message=msg, provider_name=self.get_provider_name()),
                f"s3 {operation}",
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(
                message=f"S3 {operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

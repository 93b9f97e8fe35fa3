"""Abstract base class for object (blob) storage."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict


class BlobRef(BaseModel):
    """Key and entity tag of a stored object."""

    model_config = ConfigDict(frozen=True)

    key: str
    etag: str


# Concrete implementation: S3BlobStore (ragdesk/providers/blob/)
class IBlobStore(ABC):
    """Contract for storing uploaded files by caller-chosen keys.

    Keys are opaque strings; ragdesk uses
    ``documents/{owner_id}/{timestamp_ms}-{file_name}``.
    """

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> BlobRef:
        """Store *data* under *key*.

        Raises
        ------
        ragdesk.utils.errors.BlobStoreError
            If the upload fails or the store does not return an entity tag.
        """

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the bytes stored under *key*."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the object under *key*.  Deleting a missing key succeeds."""

    @abstractmethod
    async def presign(self, key: str, ttl_seconds: int = 300) -> str:
        """Return a time-limited GET URL for *key*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"s3"``."""

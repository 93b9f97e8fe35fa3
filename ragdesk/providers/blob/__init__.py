"""Object storage for uploaded files (AWS S3 or any S3-compatible store such as MinIO)."""

from ragdesk.providers.blob.s3_blob_store import S3BlobStore

__all__ = ["S3BlobStore"]

"""Document management: upload, listing, preview links, text extraction, delete.

Uploaded files live in blob storage under
``documents/{owner_id}/{timestamp_ms}-{file_name}``; the record store keeps
one :class:`~ragdesk.models.document.Document` row per file.  Text
extraction is the step between upload and indexing: it reads the stored
file, pulls out the raw text (PDF via PyMuPDF, ``text/*`` by decoding) and
saves it on the record, leaving the document in PROCESSING, ready for
:meth:`IngestionService.index_document`.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from ragdesk.models.document import (
    Document,
    DocumentListing,
    DocumentSource,
    DocumentStatus,
    ExtractionResult,
    PreviewLink,
    UploadResult,
    transition,
)
from ragdesk.utils.errors import (
    AlreadyExtractedError,
    DocumentNotFoundError,
    EmptyInputError,
    ExtractionError,
    FileTooLargeError,
    IngestionInProgressError,
    RagDeskError,
    UnsupportedContentTypeError,
)
from ragdesk.utils.filename import display_filename, format_file_size, format_source

if TYPE_CHECKING:
    from ragdesk.config.settings import Settings
    from ragdesk.interfaces.blob_store import IBlobStore
    from ragdesk.interfaces.record_store import IRecordStore
    from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider
    from ragdesk.services.ingestion.ingestion_service import IngestionService

logger = structlog.get_logger(logger_name=__name__)

_PDF = "application/pdf"

_DEFAULT_PREVIEWABLE = frozenset(
    {
        _PDF,
        "text/plain",
        "text/markdown",
        "text/csv",
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
    }
)
_DEFAULT_EXTRACTABLE = frozenset({_PDF, "text/plain", "text/markdown", "text/csv"})


class DocumentService:
    """Manages stored documents and their raw text.

    Parameters
    ----------
    records:
        Record store for document rows.
    blob_store:
        Object storage holding the uploaded files.
    ingestion:
        Indexing service; its per-document locks are shared so extraction,
        indexing and deletion of one document never overlap.
    vector_store:
        Vector index, used to drop a deleted document's points.
    settings:
        Upload limit and preview link lifetime.
    previewable_types / extractable_types:
        Content types accepted for preview links and text extraction.
    """

    def __init__(
        self,
        records: IRecordStore,
        blob_store: IBlobStore,
        ingestion: IngestionService,
        vector_store: IVectorStoreProvider,
        settings: Settings,
        previewable_types: frozenset[str] | None = None,
        extractable_types: frozenset[str] | None = None,
    ) -> None:
        self._records = records
        self._blob_store = blob_store
        self._ingestion = ingestion
        self._vector_store = vector_store
        self._max_upload_bytes = settings.max_upload_bytes
        self._preview_ttl = settings.preview_url_ttl_seconds
        self._previewable = previewable_types or _DEFAULT_PREVIEWABLE
        self._extractable = extractable_types or _DEFAULT_EXTRACTABLE

    # ------------------------------------------------------------------
    # Upload / list
    # ------------------------------------------------------------------

    async def upload(
        self,
        owner_id: str,
        file_name: str,
        content: bytes,
        content_type: str,
        source: DocumentSource = DocumentSource.MANUAL_UPLOAD,
    ) -> UploadResult:
        """Store *content* and create a PENDING document record.

        Raises
        ------
        FileTooLargeError
            If *content* exceeds the configured upload limit.
        EmptyInputError
            If *file_name* is blank.
        BlobStoreError
            If the object store rejects the upload.
        """
        if not file_name or not file_name.strip():
            raise EmptyInputError("File name is required")
        if len(content) > self._max_upload_bytes:
            raise FileTooLargeError(size=len(content), limit=self._max_upload_bytes)

        now = datetime.now(timezone.utc)
        timestamp_ms = int(now.timestamp() * 1000)
        key = f"documents/{owner_id}/{timestamp_ms}-{file_name}"

        blob = await self._blob_store.put(
            key,
            content,
            content_type,
            metadata={
                "uploadedBy": owner_id,
                "originalName": file_name,
                "uploadedAt": now.isoformat(),
            },
        )

        document = await self._records.create_document(
            Document(
                id=str(uuid.uuid4()),
                name=file_name,
                file_name=file_name,
                storage_key=blob.key,
                content_type=content_type,
                file_size=len(content),
                status=DocumentStatus.PENDING,
                source=source,
                owner_id=owner_id,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "document_uploaded",
            document_id=document.id,
            owner_id=owner_id,
            key=blob.key,
            size=len(content),
        )
        return UploadResult(document_id=document.id, storage_key=blob.key, etag=blob.etag)

    async def list_documents(self, owner_id: str | None = None) -> list[DocumentListing]:
        """Newest first; ``owner_id=None`` lists every owner's documents."""
        documents = await self._records.list_documents(owner_id)
        return [
            DocumentListing(
                id=d.id,
                name=d.name,
                display_name=display_filename(d.name),
                uploaded_at=d.created_at,
                size=format_file_size(d.file_size),
                content_type=d.content_type,
                source=format_source(d.source.value),
                status=d.status.value.lower(),
                has_raw_text=d.has_raw_text,
                owner_id=d.owner_id,
            )
            for d in documents
        ]

    async def get_document(self, document_id: str) -> Document:
        document = await self._records.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    async def get_preview_url(self, document_id: str, ttl_seconds: int | None = None) -> PreviewLink:
        """Return a presigned URL for viewing the stored file.

        Raises
        ------
        DocumentNotFoundError
            If no document has this id.
        UnsupportedContentTypeError
            If the content type cannot be previewed.
        """
        document = await self.get_document(document_id)
        if document.content_type not in self._previewable:
            raise UnsupportedContentTypeError(document.content_type, "preview")

        ttl = ttl_seconds or self._preview_ttl
        url = await self._blob_store.presign(document.storage_key, ttl)
        return PreviewLink(
            url=url,
            content_type=document.content_type,
            file_name=document.file_name,
            expires_in=ttl,
        )

    # ------------------------------------------------------------------
    # Text extraction
    # ------------------------------------------------------------------

    async def extract_text(self, document_id: str) -> ExtractionResult:
        """Extract raw text from the stored file and save it on the record.

        On success the document stays in PROCESSING, ready for indexing.
        On failure it moves to ERROR.

        Raises
        ------
        UnsupportedContentTypeError
            If the file is neither a PDF nor ``text/*``.
        AlreadyExtractedError
            If the document already has raw text.
        ExtractionError
            If the file yields no text.
        """
        document = await self.get_document(document_id)
        if not self._is_extractable(document.content_type):
            raise UnsupportedContentTypeError(document.content_type, "text extraction")
        if document.has_raw_text:
            raise AlreadyExtractedError(document_id)

        locks = self._ingestion.locks
        if locks.locked(document_id):
            raise IngestionInProgressError(document_id)

        async with locks.hold(document_id):
            transition(document.status, DocumentStatus.PROCESSING)
            claimed = await self._records.compare_and_set_status(
                document_id,
                {DocumentStatus.PENDING, DocumentStatus.ERROR},
                DocumentStatus.PROCESSING,
            )
            if not claimed:
                raise IngestionInProgressError(document_id)

            try:
                data = await self._blob_store.get(document.storage_key)
                text, page_count = await asyncio.to_thread(
                    _extract, data, document.content_type
                )
                if not text.strip():
                    raise ExtractionError(f"No text content found in {document.file_name}")
                await self._records.update_document(document_id, raw_text=text)
            except Exception as exc:
                message = exc.message if isinstance(exc, RagDeskError) else str(exc)
                await self._records.compare_and_set_status(
                    document_id,
                    {DocumentStatus.PROCESSING},
                    DocumentStatus.ERROR,
                    error_message=f"extract step failed: {message}",
                )
                logger.error("text_extraction_failed", document_id=document_id, error=message)
                if isinstance(exc, RagDeskError):
                    raise
                raise ExtractionError(message) from exc

        logger.info(
            "text_extracted",
            document_id=document_id,
            text_length=len(text),
            pages=page_count,
        )
        return ExtractionResult(document_id=document_id, text_length=len(text), page_count=page_count)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_document(self, document_id: str) -> None:
        """Remove the stored file, the document's vectors and the record.

        A vector-store failure is logged and does not stop the deletion.
        """
        document = await self.get_document(document_id)
        locks = self._ingestion.locks
        if locks.locked(document_id):
            raise IngestionInProgressError(document_id)

        async with locks.hold(document_id):
            await self._blob_store.delete(document.storage_key)
            try:
                await self._vector_store.delete_by_document(document_id)
            except RagDeskError as exc:
                logger.warning(
                    "document_vector_cleanup_failed",
                    document_id=document_id,
                    error=str(exc),
                )
            await self._records.delete_document(document_id)

        logger.info("document_deleted", document_id=document_id, key=document.storage_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _is_extractable(self, content_type: str) -> bool:
        return content_type in self._extractable or content_type.startswith("text/")


def _extract(data: bytes, content_type: str) -> tuple[str, int | None]:
    """Return ``(text, page_count)``; page count is ``None`` for plain text."""
    if content_type != _PDF:
        return data.decode("utf-8", errors="replace"), None

    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise ExtractionError(f"Could not open PDF: {exc}") from exc

    try:
        pages = [doc[page_num].get_text("text") for page_num in range(len(doc))]
    finally:
        doc.close()
    return "\n".join(pages), len(pages)

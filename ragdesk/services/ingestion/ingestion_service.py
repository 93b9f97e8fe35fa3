"""Orchestrator for indexing one document: **chunk -> embed -> index**.

The :class:`IngestionService` coordinates the chunker, the embedder and the
vector store for a single document and drives the document status state
machine:

    1. Guard -- the document must exist, carry extracted raw text and not be
       INDEXED already.  A per-document lock plus a compare-and-set on the
       record status (-> PROCESSING) ensure at most one run per document.
    2. RecursiveTextChunker -- splits the raw text into overlapping windows.
    3. Embedder -- embeds every chunk in batches.
    4. IVectorStoreProvider -- drops any points left by earlier runs, then
       upserts the new ones.
    5. Finalize -- status -> INDEXED.

Any failure moves the status to ERROR (recording the failing step) and
raises :class:`~ragdesk.utils.errors.IngestionError` naming that step.

All collaborators are injected via the constructor.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from ragdesk.models.document import Document, DocumentStatus, transition
from ragdesk.models.rag import ChunkingConfig, IngestionResult
from ragdesk.services.ingestion.chunker import RecursiveTextChunker, chunking_stats
from ragdesk.services.ingestion.embedder import embedding_cost
from ragdesk.utils.concurrency import KeyedLock
from ragdesk.utils.errors import (
    AlreadyIndexedError,
    DocumentNotFoundError,
    IngestionError,
    IngestionInProgressError,
    InvalidStatusTransitionError,
    MissingRawTextError,
    RagDeskError,
)

if TYPE_CHECKING:
    from ragdesk.interfaces.record_store import IRecordStore
    from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider
    from ragdesk.services.ingestion.embedder import Embedder

logger = structlog.get_logger(logger_name=__name__)

# Statuses from which an indexing run may start.  PROCESSING is included
# because text extraction leaves documents there; the per-document lock
# keeps two runs from both claiming it.
_STARTABLE = frozenset({DocumentStatus.PENDING, DocumentStatus.ERROR, DocumentStatus.PROCESSING})


class IngestionService:
    """Indexes documents into the vector store and tracks their status.

    Parameters
    ----------
    records:
        Record store holding documents and their status.
    embedder:
        Batch embedder for chunk texts.
    vector_store:
        Destination vector index.
    chunking_config:
        Window size, overlap and separators for the chunker.
    locks:
        Per-document lock registry; shared with other services that mutate
        document status.
    """

    def __init__(
        self,
        records: IRecordStore,
        embedder: Embedder,
        vector_store: IVectorStoreProvider,
        chunking_config: ChunkingConfig | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._records = records
        self._embedder = embedder
        self._vector_store = vector_store
        self._chunker = RecursiveTextChunker(chunking_config)
        self._locks = locks or KeyedLock()

    @property
    def locks(self) -> KeyedLock:
        return self._locks

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def index_document(self, document_id: str) -> IngestionResult:
        """Chunk, embed and index one document.

        Raises
        ------
        DocumentNotFoundError
            If no document has this id.
        MissingRawTextError
            If the document has no extracted text.
        AlreadyIndexedError
            If the document is already INDEXED.
        IngestionInProgressError
            If another run holds the document.
        IngestionError
            If a pipeline step fails; the document is left in ERROR.
        """
        document = await self._records.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        if not document.has_raw_text:
            raise MissingRawTextError(document_id)
        if document.status is DocumentStatus.INDEXED:
            raise AlreadyIndexedError(document_id)
        if self._locks.locked(document_id):
            raise IngestionInProgressError(document_id)

        async with self._locks.hold(document_id):
            transition(document.status, DocumentStatus.PROCESSING)
            claimed = await self._records.compare_and_set_status(
                document_id, _STARTABLE, DocumentStatus.PROCESSING
            )
            if not claimed:
                raise IngestionInProgressError(document_id)

            logger.info("ingestion_started", document_id=document_id, name=document.name)
            return await self._run(document)

    async def reset_document(self, document_id: str) -> Document:
        """Return an INDEXED or ERROR document to PENDING, dropping its vectors.

        Raises
        ------
        DocumentNotFoundError
            If no document has this id.
        InvalidStatusTransitionError
            If the document is PENDING or PROCESSING.
        IngestionInProgressError
            If an indexing run holds the document.
        """
        document = await self._records.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        transition(document.status, DocumentStatus.PENDING, reset=True)
        if self._locks.locked(document_id):
            raise IngestionInProgressError(document_id)

        async with self._locks.hold(document_id):
            await self._vector_store.delete_by_document(document_id)
            swapped = await self._records.compare_and_set_status(
                document_id, {document.status}, DocumentStatus.PENDING
            )
            if not swapped:
                raise IngestionInProgressError(document_id)

        logger.info("document_reset", document_id=document_id, previous=document.status.value)
        updated = await self._records.get_document(document_id)
        if updated is None:
            raise DocumentNotFoundError(document_id)
        return updated

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self, document: Document) -> IngestionResult:
        document_id = document.id
        started = time.monotonic()
        step = "chunk"
        try:
            chunks = self._chunker.chunk(document.raw_text or "")
            stats = chunking_stats(chunks)
            logger.info(
                "document_chunked",
                document_id=document_id,
                chunks=stats.total_chunks,
                average_chunk_size=stats.average_chunk_size,
            )

            step = "embed"
            embeddings = await self._embedder.embed_batch([c.content for c in chunks])

            step = "index"
            await self._vector_store.delete_by_document(document_id)
            await self._vector_store.ensure_collection()
            indexing = await self._vector_store.upsert_chunks(
                document_id, chunks, embeddings.vectors, filename=document.name
            )

            step = "finalize"
            finished = await self._records.compare_and_set_status(
                document_id, {DocumentStatus.PROCESSING}, DocumentStatus.INDEXED
            )
            if not finished:
                current = await self._records.get_document(document_id)
                current_status = current.status.value if current else "missing"
                raise InvalidStatusTransitionError(current_status, DocumentStatus.INDEXED.value)
        except Exception as exc:
            message = exc.message if isinstance(exc, RagDeskError) else str(exc)
            await self._mark_failed(document_id, step, message)
            raise IngestionError(step=step, message=message) from exc

        elapsed = time.monotonic() - started
        result = IngestionResult(
            document_id=document_id,
            chunks=stats.total_chunks,
            total_characters=stats.total_characters,
            average_chunk_size=stats.average_chunk_size,
            points_indexed=indexing.points_indexed,
            tokens_used=embeddings.total_tokens,
            estimated_cost=embedding_cost(embeddings.total_tokens, embeddings.model),
            model=embeddings.model,
            elapsed_seconds=round(elapsed, 3),
        )
        logger.info(
            "ingestion_complete",
            document_id=document_id,
            chunks=result.chunks,
            points=result.points_indexed,
            tokens=result.tokens_used,
            estimated_cost=result.estimated_cost,
            elapsed_s=result.elapsed_seconds,
        )
        return result

    async def _mark_failed(self, document_id: str, step: str, message: str) -> None:
        """Move the document to ERROR and remove any points this run wrote."""
        if step in ("index", "finalize"):
            try:
                await self._vector_store.delete_by_document(document_id)
            except RagDeskError as cleanup_exc:
                logger.warning(
                    "ingestion_cleanup_failed",
                    document_id=document_id,
                    error=str(cleanup_exc),
                )
        try:
            await self._records.compare_and_set_status(
                document_id,
                {DocumentStatus.PROCESSING},
                DocumentStatus.ERROR,
                error_message=f"{step} step failed: {message}",
            )
        except RagDeskError as status_exc:
            logger.error(
                "ingestion_status_update_failed",
                document_id=document_id,
                error=str(status_exc),
            )
        logger.error("ingestion_failed", document_id=document_id, step=step, error=message)

"""Aggregated health of the record store and the vector index.

Each probe catches its own failure and reports it as a ``disconnected``
entry carrying the error message, so :meth:`DiagnosticsService.status`
always returns a report, even when every backend is down.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from ragdesk.models.diagnostics import (
    CorpusStats,
    RecordStoreStatus,
    ServiceStatus,
    VectorStoreStatus,
)
from ragdesk.models.document import DocumentStatus
from ragdesk.utils.filename import format_file_size

if TYPE_CHECKING:
    from ragdesk.interfaces.record_store import IRecordStore
    from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

CONNECTED = "connected"
DISCONNECTED = "disconnected"


class DiagnosticsService:
    """Reports backend connectivity and corpus counts."""

    def __init__(
        self,
        records: IRecordStore,
        vector_store: IVectorStoreProvider,
        embedding_model: str,
    ) -> None:
        self._records = records
        self._vector_store = vector_store
        self._embedding_model = embedding_model

    async def status(self) -> ServiceStatus:
        return ServiceStatus(
            record_store=await self.record_store_status(),
            vector_store=await self.vector_store_status(),
            corpus=await self.corpus_stats(),
            checked_at=datetime.now(timezone.utc),
        )

    async def record_store_status(self) -> RecordStoreStatus:
        provider = self._records.get_provider_name()
        try:
            await self._records.ping()
            version = await self._records.server_version()
            size_bytes = await self._records.database_size_bytes()
        except Exception as exc:
            logger.warning("record_store_check_failed", error=str(exc))
            return RecordStoreStatus(status=DISCONNECTED, provider=provider, error=str(exc))
        return RecordStoreStatus(
            status=CONNECTED,
            provider=provider,
            version=version,
            size_bytes=size_bytes,
            size=format_file_size(size_bytes),
        )

    async def vector_store_status(self) -> VectorStoreStatus:
        base = {
            "provider": self._vector_store.get_provider_name(),
            "collection": self._vector_store.get_collection_name(),
            "embedding_model": self._embedding_model,
        }
        if not await self._vector_store.health_check():
            return VectorStoreStatus(status=DISCONNECTED, error="Health check failed", **base)
        try:
            info = await self._vector_store.collection_info()
        except Exception as exc:
            logger.warning("vector_store_check_failed", error=str(exc))
            return VectorStoreStatus(status=DISCONNECTED, error=str(exc), **base)
        return VectorStoreStatus(
            status=CONNECTED,
            points_count=info.points_count,
            indexed_vectors_count=info.indexed_vectors_count,
            collection_status=info.status,
            **base,
        )

    async def corpus_stats(self) -> CorpusStats:
        try:
            total = await self._records.count_documents()
            indexed = await self._records.count_documents(status=DocumentStatus.INDEXED)
            errored = await self._records.count_documents(status=DocumentStatus.ERROR)
            with_text = await self._records.count_documents(has_raw_text=True)
            chats = await self._records.count_chats()
        except Exception as exc:
            logger.warning("corpus_stats_failed", error=str(exc))
            return CorpusStats()
        return CorpusStats(
            documents_total=total,
            documents_indexed=indexed,
            documents_with_text=with_text,
            documents_unindexed=total - indexed,
            documents_error=errored,
            chats_total=chats,
        )

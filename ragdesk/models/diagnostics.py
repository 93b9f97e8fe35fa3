"""Service status models returned by the diagnostics endpoint and CLI."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class RecordStoreStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    provider: str
    version: str | None = None
    size_bytes: int | None = None
    size: str | None = None
    error: str | None = None


class VectorStoreStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    provider: str
    collection: str
    embedding_model: str
    points_count: int | None = None
    indexed_vectors_count: int | None = None
    collection_status: str | None = None
    error: str | None = None


class CorpusStats(BaseModel):
    """Document and chat counts; ``None`` when the record store is unreachable."""

    model_config = ConfigDict(frozen=True)

    documents_total: int | None = None
    documents_indexed: int | None = None
    documents_with_text: int | None = None
    documents_unindexed: int | None = None
    documents_error: int | None = None
    chats_total: int | None = None


class ServiceStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_store: RecordStoreStatus
    vector_store: VectorStoreStatus
    corpus: CorpusStats
    checked_at: datetime

"""Shared pytest fixtures for the ragdesk test suite."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ragdesk.config.settings import Settings
from ragdesk.interfaces.blob_store import BlobRef, IBlobStore
from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.interfaces.llm_provider import ILLMProvider
from ragdesk.models.document import Document, DocumentStatus
from ragdesk.models.rag import EmbeddingBatch
from ragdesk.providers.records.sqlite_record_store import SQLiteRecordStore
from ragdesk.providers.vector_store.memory_provider import InMemoryVectorStoreProvider
from ragdesk.services.chat_service import ChatService
from ragdesk.services.document_service import DocumentService
from ragdesk.services.ingestion.embedder import Embedder
from ragdesk.services.ingestion.ingestion_service import IngestionService
from ragdesk.utils.errors import BlobStoreError, EmbeddingServiceError

_EMBEDDING_DIM = 16


def _settings(**overrides: Any) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    defaults: dict[str, Any] = {
        "_env_file": None,
        "openai_api_key": "sk-test",
        "openai_embedding_model": "text-embedding-3-small",
        "anthropic_api_key": "sk-ant-test",
        "anthropic_claude_model": "claude-test",
        "vector_store_backend": "memory",
        "embedding_batch_delay": 0.0,
        "external_call_timeout": 0.0,
        "minio_access_key": "minio",
        "minio_secret_key": "minio-secret",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic unit vector derived from the SHA-256 of *text*.

    Identical texts map to identical vectors, so a query equal to a chunk's
    content scores 1.0 against it.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(b - 127.5) / 127.5 for b in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    Records every request in ``calls``.  Setting ``fail_on_call`` to a
    1-based call number makes that request raise.
    """

    def __init__(self, model: str = "text-embedding-3-small", dimension: int = _EMBEDDING_DIM) -> None:
        self._model = model
        self._dimension = dimension
        self.calls: list[list[str]] = []
        self.fail_on_call: int | None = None

    async def embed(self, texts: list[str]) -> EmbeddingBatch:
        self.calls.append(list(texts))
        if self.fail_on_call == len(self.calls):
            raise EmbeddingServiceError(message="rate limited", provider_name="mock-embedding")
        return EmbeddingBatch(
            vectors=[_hash_to_vector(t, self._dimension) for t in texts],
            tokens_used=sum(max(1, len(t) // 4) for t in texts),
        )

    def get_model(self) -> str:
        return self._model

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class FakeBlobStore(IBlobStore):
    """Dict-backed blob store."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.metadata: dict[str, dict[str, str]] = {}

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> BlobRef:
        self.objects[key] = data
        self.metadata[key] = dict(metadata or {})
        return BlobRef(key=key, etag=hashlib.md5(data).hexdigest())  # noqa: S324

    async def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise BlobStoreError(message=f"No such key: {key}", provider_name="fake")
        return self.objects[key]

    async def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    async def presign(self, key: str, ttl_seconds: int = 300) -> str:
        return f"https://blobs.test/{key}?expires={ttl_seconds}"

    def get_provider_name(self) -> str:
        return "fake"


def _mock_llm(reply: str = "Revenue grew 12% in Q3.") -> MagicMock:
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value=reply)
    llm.get_provider_name.return_value = "mock-llm"
    llm.is_available.return_value = True
    return llm


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return _settings()


@pytest.fixture
def mock_embedding() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def embedder(mock_embedding: MockEmbeddingProvider) -> Embedder:
    return Embedder(mock_embedding, batch_size=100, batch_delay=0.0)


@pytest.fixture
def vector_store() -> InMemoryVectorStoreProvider:
    return InMemoryVectorStoreProvider(collection_name="test-documents", dimension=_EMBEDDING_DIM)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def mock_llm() -> MagicMock:
    return _mock_llm()


@pytest.fixture
async def record_store(tmp_path: Path) -> SQLiteRecordStore:
    store = SQLiteRecordStore(tmp_path / "ragdesk.db")
    await store.initialize()
    return store


@pytest.fixture
def ingestion_service(
    record_store: SQLiteRecordStore,
    embedder: Embedder,
    vector_store: InMemoryVectorStoreProvider,
) -> IngestionService:
    return IngestionService(records=record_store, embedder=embedder, vector_store=vector_store)


@pytest.fixture
def document_service(
    record_store: SQLiteRecordStore,
    blob_store: FakeBlobStore,
    ingestion_service: IngestionService,
    vector_store: InMemoryVectorStoreProvider,
    settings: Settings,
) -> DocumentService:
    return DocumentService(
        records=record_store,
        blob_store=blob_store,
        ingestion=ingestion_service,
        vector_store=vector_store,
        settings=settings,
    )


@pytest.fixture
def chat_service(
    record_store: SQLiteRecordStore,
    embedder: Embedder,
    vector_store: InMemoryVectorStoreProvider,
    mock_llm: MagicMock,
    settings: Settings,
) -> ChatService:
    return ChatService(
        records=record_store,
        embedder=embedder,
        vector_store=vector_store,
        llm=mock_llm,
        settings=settings,
    )


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_report_text() -> str:
    """Multi-paragraph report text, long enough to produce several chunks."""
    paragraphs = [
        (
            f"Section {i}. The quarterly operations review for region {i} covers "
            f"shipping volumes, staffing levels and supplier lead times. Region {i} "
            f"reported {100 + i * 7} shipments and {20 + i} open requisitions, with "
            "lead times improving after the warehouse consolidation finished in August."
        )
        for i in range(1, 13)
    ]
    return "\n\n".join(paragraphs)


async def make_document(
    store: SQLiteRecordStore,
    document_id: str = "doc-1",
    raw_text: str | None = None,
    status: DocumentStatus = DocumentStatus.PENDING,
    owner_id: str = "user-1",
    name: str = "report.txt",
    content_type: str = "text/plain",
) -> Document:
    """Insert a document row directly, bypassing blob storage."""
    now = datetime.now(timezone.utc)
    return await store.create_document(
        Document(
            id=document_id,
            name=name,
            file_name=name,
            storage_key=f"documents/{owner_id}/0-{name}",
            content_type=content_type,
            file_size=len(raw_text or ""),
            status=status,
            raw_text=raw_text,
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
    )

"""Object-graph assembly shared by the API server and the CLI.

:func:`build_components` constructs every provider and service from the
resolved settings and YAML config and returns them as a flat dict; the
FastAPI lifespan copies the entries onto ``app.state`` and the CLI picks
the ones it needs.  No module keeps a client singleton.
"""

from __future__ import annotations

from typing import Any

import structlog

from ragdesk.config.loader import (
    build_chunking_config,
    extractable_content_types,
    previewable_content_types,
)
from ragdesk.config.settings import Settings
from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider
from ragdesk.providers.blob.s3_blob_store import S3BlobStore
from ragdesk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragdesk.providers.llm.anthropic_provider import AnthropicLLMProvider
from ragdesk.providers.records.sqlite_record_store import SQLiteRecordStore
from ragdesk.providers.vector_store.memory_provider import InMemoryVectorStoreProvider
from ragdesk.providers.vector_store.qdrant_provider import QdrantVectorStoreProvider
from ragdesk.services.chat_service import ChatService
from ragdesk.services.diagnostics_service import DiagnosticsService
from ragdesk.services.document_service import DocumentService
from ragdesk.services.ingestion.embedder import Embedder
from ragdesk.services.ingestion.ingestion_service import IngestionService
from ragdesk.utils.errors import ConfigurationError
from ragdesk.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_VECTOR_BACKENDS = ("qdrant", "memory")


def build_vector_store(settings: Settings, vector_name: str, dimension: int) -> IVectorStoreProvider:
    backend = settings.vector_store_backend.lower()
    if backend == "qdrant":
        return QdrantVectorStoreProvider.from_settings(settings, vector_name, dimension)
    if backend == "memory":
        return InMemoryVectorStoreProvider(collection_name=settings.qdrant_collection, dimension=dimension)
    raise ConfigurationError(
        message=f"Unknown vector store backend '{settings.vector_store_backend}'. "
        f"Choose from {list(_VECTOR_BACKENDS)}"
    )


def build_components(settings: Settings, config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service for the application.

    Raises
    ------
    ConfigurationError
        If the chunking preset or vector store backend is invalid.
    """
    timeout = settings.external_call_timeout or None

    # -- Providers --
    records = SQLiteRecordStore(settings.database_path)
    embedding_provider = OpenAIEmbeddingProvider(settings=settings)
    llm = AnthropicLLMProvider(settings=settings)
    blob_store = S3BlobStore.from_settings(settings)
    vector_store = build_vector_store(
        settings,
        vector_name=embedding_provider.get_model(),
        dimension=embedding_provider.get_dimension(),
    )

    # -- Services --
    embedder = Embedder(
        embedding_provider,
        batch_size=settings.embedding_batch_size,
        batch_delay=settings.embedding_batch_delay,
        timeout=timeout,
    )
    ingestion_service = IngestionService(
        records=records,
        embedder=embedder,
        vector_store=vector_store,
        chunking_config=build_chunking_config(config),
    )
    document_service = DocumentService(
        records=records,
        blob_store=blob_store,
        ingestion=ingestion_service,
        vector_store=vector_store,
        settings=settings,
        previewable_types=previewable_content_types(config),
        extractable_types=extractable_content_types(config),
    )
    chat_service = ChatService(
        records=records,
        embedder=embedder,
        vector_store=vector_store,
        llm=llm,
        settings=settings,
    )
    diagnostics_service = DiagnosticsService(
        records=records,
        vector_store=vector_store,
        embedding_model=embedder.model,
    )

    if not embedding_provider.is_available():
        _logger.warning("embedding_provider_unconfigured", provider=embedding_provider.get_provider_name())
    if not llm.is_available():
        _logger.warning("llm_provider_unconfigured", provider=llm.get_provider_name())

    return {
        "settings": settings,
        "config": config,
        "app_version": str(config.get("app", {}).get("version", "0.1.0")),
        "records": records,
        "blob_store": blob_store,
        "vector_store": vector_store,
        "embedder": embedder,
        "llm": llm,
        "ingestion_service": ingestion_service,
        "document_service": document_service,
        "chat_service": chat_service,
        "diagnostics_service": diagnostics_service,
    }


async def close_components(components: dict[str, Any]) -> None:
    """Release network clients held by the components."""
    vector_store = components.get("vector_store")
    if isinstance(vector_store, QdrantVectorStoreProvider):
        await vector_store.close()

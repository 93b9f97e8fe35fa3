"""Pydantic v2 data models for ragdesk."""

from ragdesk.models.chat import (
    Chat,
    ChatStats,
    ChatSummary,
    ChatTurnResult,
    ChatWithMessages,
    Message,
    MessageRole,
    RetrievalFailure,
    RetrievalOutcome,
    RetrievedContext,
    Source,
)
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
from ragdesk.models.rag import (
    BatchEmbeddingResult,
    ChunkingConfig,
    ChunkingStats,
    ChunkPayload,
    CollectionInfo,
    EmbeddingBatch,
    EmbeddingVector,
    IndexingResult,
    IngestionResult,
    LengthUnit,
    TextChunk,
    VectorPoint,
    VectorSearchResult,
)

__all__ = [
    "BatchEmbeddingResult",
    "Chat",
    "ChatStats",
    "ChatSummary",
    "ChatTurnResult",
    "ChatWithMessages",
    "ChunkPayload",
    "ChunkingConfig",
    "ChunkingStats",
    "CollectionInfo",
    "Document",
    "DocumentListing",
    "DocumentSource",
    "DocumentStatus",
    "EmbeddingBatch",
    "EmbeddingVector",
    "ExtractionResult",
    "IndexingResult",
    "IngestionResult",
    "LengthUnit",
    "Message",
    "MessageRole",
    "PreviewLink",
    "RetrievalFailure",
    "RetrievalOutcome",
    "RetrievedContext",
    "Source",
    "TextChunk",
    "UploadResult",
    "VectorPoint",
    "VectorSearchResult",
    "transition",
]

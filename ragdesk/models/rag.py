"""Retrieval pipeline data models.

Pydantic v2 models for the values that flow through the pipeline:

1. CHUNKING: raw document text is split into :class:`TextChunk` windows
   according to a :class:`ChunkingConfig`.
2. EMBEDDING: chunk texts become :class:`EmbeddingVector` /
   :class:`BatchEmbeddingResult` values.
3. INDEXING: each chunk + vector is stored as a :class:`VectorPoint` whose
   payload is a validated :class:`ChunkPayload`.
4. RETRIEVAL: similarity search returns :class:`VectorSearchResult` rows.

All models are frozen; none of them is persisted directly except through
the vector index payload.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")

CHUNK_CATEGORY = "document_chunk"


class LengthUnit(str, Enum):  # noqa: UP042
    """Unit in which ``chunk_size`` and ``chunk_overlap`` are expressed."""

    CHARACTERS = "characters"
    TOKENS = "tokens"


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------
class ChunkingConfig(BaseModel):
    """Window size, overlap and separator priority for the chunker.

    ``chunk_overlap`` must be strictly smaller than ``chunk_size``; the
    constructor raises a ``ValueError`` (pydantic ``ValidationError``)
    otherwise.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=1000, gt=0, description="Maximum window length.")
    chunk_overlap: int = Field(
        default=200, ge=0, description="Trailing context repeated at the start of the next window."
    )
    separators: tuple[str, ...] = Field(
        default=DEFAULT_SEPARATORS,
        description="Split points in priority order; the empty string hard-cuts.",
    )
    length_unit: LengthUnit = Field(default=LengthUnit.CHARACTERS)
    tokenizer_name: str = Field(
        default="bert-base-uncased",
        description="HuggingFace tokenizer that measures lengths when length_unit is tokens.",
    )

    @model_validator(mode="after")
    def _check_overlap(self) -> ChunkingConfig:
        if self.chunk_overlap >= self.chunk_size:
            msg = (
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
            raise ValueError(msg)
        if not self.separators:
            raise ValueError("separators must contain at least one entry")
        return self


class TextChunk(BaseModel):
    """One contiguous slice of a document's raw text.

    ``content == source_text[start_offset:end_offset]`` always holds.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)
    chunk_index: int = Field(ge=0)

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset


class ChunkingStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_chunks: int = 0
    total_characters: int = 0
    average_chunk_size: int = 0
    min_chunk_size: int = 0
    max_chunk_size: int = 0


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------
class EmbeddingBatch(BaseModel):
    """Raw output of one embedding provider call."""

    model_config = ConfigDict(frozen=True)

    vectors: list[list[float]]
    tokens_used: int = Field(default=0, ge=0)


class EmbeddingVector(BaseModel):
    model_config = ConfigDict(frozen=True)

    embedding: list[float]
    token_count: int = Field(default=0, ge=0)


class BatchEmbeddingResult(BaseModel):
    """Vectors for every valid input text, in input order."""

    model_config = ConfigDict(frozen=True)

    vectors: list[list[float]]
    total_tokens: int = Field(default=0, ge=0)
    model: str


# ---------------------------------------------------------------------------
# Vector index
# ---------------------------------------------------------------------------
class ChunkPayload(BaseModel):
    """Payload stored alongside every vector point.

    Field names match the keys written to the vector database so existing
    collections remain readable: ``doc_id``, ``chunk_idx``,
    ``text_content``, ``start_idx`` and ``end_idx``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chunk_id: str = Field(description="UUID of the chunk, independent of the point id.")
    document_id: str = Field(alias="doc_id")
    chunk_index: int = Field(alias="chunk_idx", ge=0)
    text: str = Field(alias="text_content")
    start_offset: int = Field(alias="start_idx", ge=0)
    end_offset: int = Field(alias="end_idx", ge=0)
    created_at: datetime
    category: str = CHUNK_CATEGORY
    filename: str = Field(description="Human-readable label of the originating document.")

    def to_store(self) -> dict[str, object]:
        """Serialise with database keys and an ISO timestamp."""
        return self.model_dump(by_alias=True, mode="json")


class VectorPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    vector: list[float]
    payload: ChunkPayload


class VectorSearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    payload: ChunkPayload


class IndexingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    points_indexed: int = Field(default=0, ge=0)
    collection_name: str
    message: str = ""


class CollectionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    points_count: int = 0
    indexed_vectors_count: int = 0
    status: str = "unknown"


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Summary of one successful ingestion run for a document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    chunks: int = Field(default=0, ge=0)
    total_characters: int = Field(default=0, ge=0)
    average_chunk_size: int = Field(default=0, ge=0)
    points_indexed: int = Field(default=0, ge=0)
    tokens_used: int = Field(default=0, ge=0)
    estimated_cost: float = Field(default=0.0, ge=0.0, description="USD, from the price table.")
    model: str = ""
    elapsed_seconds: float = Field(default=0.0, ge=0.0)

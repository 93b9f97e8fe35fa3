"""Payload construction and validation shared by the vector-store providers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import ValidationError

from ragdesk.models.rag import ChunkPayload, TextChunk, VectorPoint

logger = structlog.get_logger(logger_name=__name__)


def build_points(
    document_id: str,
    chunks: list[TextChunk],
    vectors: list[list[float]],
    filename: str | None = None,
) -> list[VectorPoint]:
    """Pair chunks with vectors as points with fresh random ids.

    Point ids are never derived from ``(document_id, chunk_index)``; two
    runs over the same document always produce disjoint id sets.
    """
    created_at = datetime.now(timezone.utc)
    label = filename or f"document_{document_id}"
    return [
        VectorPoint(
            id=str(uuid.uuid4()),
            vector=vector,
            payload=ChunkPayload(
                chunk_id=str(uuid.uuid4()),
                document_id=document_id,
                chunk_index=chunk.chunk_index,
                text=chunk.content,
                start_offset=chunk.start_offset,
                end_offset=chunk.end_offset,
                created_at=created_at,
                filename=label,
            ),
        )
        for chunk, vector in zip(chunks, vectors)
    ]


def parse_payload(point_id: str, raw: dict[str, Any] | None) -> ChunkPayload | None:
    """Validate a stored payload; return ``None`` (and log) if it is malformed."""
    try:
        return ChunkPayload.model_validate(raw or {})
    except ValidationError as exc:
        logger.warning(
            "vector_payload_invalid",
            point_id=point_id,
            errors=exc.error_count(),
        )
        return None

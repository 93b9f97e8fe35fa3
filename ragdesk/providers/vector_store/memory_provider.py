"""In-process vector store for local development.

Keeps points in a dict and scores them with cosine similarity.  Honours
the same contract as the Qdrant provider (shape checks, thresholds,
per-document filters, idempotent deletes) so the application can run
without a Qdrant server by setting ``VECTOR_STORE_BACKEND=memory``.
Nothing is persisted across restarts.
"""

from __future__ import annotations

import math

import structlog

from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider
from ragdesk.models.rag import (
    CollectionInfo,
    IndexingResult,
    TextChunk,
    VectorPoint,
    VectorSearchResult,
)
from ragdesk.providers.vector_store.payload import build_points
from ragdesk.utils.errors import ShapeMismatchError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryVectorStoreProvider(IVectorStoreProvider):
    """Dict-backed vector store with brute-force cosine search."""

    def __init__(self, collection_name: str = "documents", dimension: int | None = None) -> None:
        self._collection_name = collection_name
        self._dimension = dimension
        self._points: dict[str, VectorPoint] = {}
        self._created = False
        self.create_calls = 0

    async def ensure_collection(self) -> None:
        if self._created:
            return
        self._created = True
        self.create_calls += 1
        logger.info("memory_collection_created", collection=self._collection_name)

    async def upsert_chunks(
        self,
        document_id: str,
        chunks: list[TextChunk],
        vectors: list[list[float]],
        filename: str | None = None,
    ) -> IndexingResult:
        if len(chunks) != len(vectors):
            raise ShapeMismatchError(chunks=len(chunks), vectors=len(vectors))
        if self._dimension is not None:
            for vector in vectors:
                if len(vector) != self._dimension:
                    raise VectorStoreError(
                        message=(
                            f"Vector dimension error: expected dim: {self._dimension}, "
                            f"got {len(vector)}"
                        ),
                        provider_name=self.get_provider_name(),
                    )

        await self.ensure_collection()
        for point in build_points(document_id, chunks, vectors, filename):
            self._points[point.id] = point

        return IndexingResult(
            points_indexed=len(chunks),
            collection_name=self._collection_name,
            message=f"Successfully indexed {len(chunks)} chunks",
        )

    async def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float = 0.7,
        document_id: str | None = None,
    ) -> list[VectorSearchResult]:
        scored: list[VectorSearchResult] = []
        for point in self._points.values():
            if document_id is not None and point.payload.document_id != document_id:
                continue
            score = _cosine(query_vector, point.vector)
            if score >= score_threshold:
                scored.append(VectorSearchResult(id=point.id, score=score, payload=point.payload))
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:limit]

    async def delete_by_document(self, document_id: str) -> None:
        doomed = [pid for pid, p in self._points.items() if p.payload.document_id == document_id]
        for pid in doomed:
            del self._points[pid]
        logger.info("memory_delete_by_document", document_id=document_id, deleted=len(doomed))

    async def collection_info(self) -> CollectionInfo:
        count = len(self._points)
        return CollectionInfo(points_count=count, indexed_vectors_count=count, status="green")

    async def health_check(self) -> bool:
        return True

    def get_collection_name(self) -> str:
        return self._collection_name

    def get_provider_name(self) -> str:
        return "memory"

    def point_ids(self, document_id: str | None = None) -> set[str]:
        return {
            pid
            for pid, p in self._points.items()
            if document_id is None or p.payload.document_id == document_id
        }


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)

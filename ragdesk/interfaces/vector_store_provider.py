"""Abstract base class for vector-store providers.

A provider owns exactly one named collection.  Points are addressed by
random UUIDs; every point carries a :class:`~ragdesk.models.rag.ChunkPayload`
whose ``doc_id`` ties it to its document, so the set of points with
``doc_id == D`` is the index's view of document D.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragdesk.models.rag import CollectionInfo, IndexingResult, TextChunk, VectorSearchResult


# Concrete implementations: QdrantVectorStoreProvider, InMemoryVectorStoreProvider
# Located in: ragdesk/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for the vector index used by ingestion and chat retrieval.

    All query and mutation methods are async; mutations return only after
    the store has acknowledged the write.
    """

    @abstractmethod
    async def ensure_collection(self) -> None:
        """Create the collection if it does not exist.

        Idempotent: a second call performs no remote mutation.

        Raises
        ------
        ragdesk.utils.errors.VectorStoreError
            If the store cannot be reached or the collection cannot be created.
        """

    @abstractmethod
    async def upsert_chunks(
        self,
        document_id: str,
        chunks: list[TextChunk],
        vectors: list[list[float]],
        filename: str | None = None,
    ) -> IndexingResult:
        """Store one point per chunk under *document_id*.

        Parameters
        ----------
        document_id:
            Owner of the chunks; written to each payload as ``doc_id``.
        chunks:
            Chunks in source order.
        vectors:
            Embedding vectors corresponding positionally to *chunks*.
        filename:
            Label stored in the payload; defaults to ``document_{id}``.

        Returns
        -------
        IndexingResult
            Number of points written and the collection name.

        Raises
        ------
        ragdesk.utils.errors.ShapeMismatchError
            If ``len(chunks) != len(vectors)``; nothing is written.
        ragdesk.utils.errors.VectorStoreError
            If an upsert batch fails.  Earlier batches stay visible.
        """

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float = 0.7,
        document_id: str | None = None,
    ) -> list[VectorSearchResult]:
        """Return up to *limit* points scoring at least *score_threshold*.

        Results are ordered by descending cosine similarity.  An empty list
        means nothing cleared the threshold; it is not an error.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> None:
        """Remove every point whose payload ``doc_id`` equals *document_id*.

        Idempotent: deleting an absent document's points succeeds.
        """

    @abstractmethod
    async def collection_info(self) -> CollectionInfo:
        """Return point counts and status of the collection."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` if the store answers.  Never raises."""

    @abstractmethod
    def get_collection_name(self) -> str:
        """Return the name of the collection this provider owns."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"qdrant"`` or ``"memory"``."""

"""Qdrant vector-store provider.

Implements :class:`IVectorStoreProvider` on top of ``qdrant_client``'s
async client.  The collection layout:

* one **named dense vector** keyed by the embedding model id (e.g.
  ``text-embedding-3-large``), cosine distance, HNSW m=24 /
  ef_construct=256 / payload_m=24;
* one **sparse vector** field ``text-sparse-vector`` stored on disk, kept
  for hybrid search;
* a keyword payload index on ``doc_id`` so per-document filters and
  deletes stay cheap as the collection grows.

Upserts are split into batches (default 100 points) and each batch waits
for the server acknowledgement before the next one is sent.
"""

from __future__ import annotations

import structlog
from qdrant_client import AsyncQdrantClient, models

from ragdesk.config.settings import Settings
from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider
from ragdesk.models.rag import CollectionInfo, IndexingResult, TextChunk, VectorSearchResult
from ragdesk.providers.vector_store.payload import build_points, parse_payload
from ragdesk.utils.concurrency import call_with_timeout
from ragdesk.utils.errors import ShapeMismatchError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

SPARSE_VECTOR_NAME = "text-sparse-vector"

_HNSW_CONFIG = models.HnswConfigDiff(m=24, ef_construct=256, payload_m=24, on_disk=False)


class QdrantVectorStoreProvider(IVectorStoreProvider):
    """Vector store backed by a Qdrant collection.

    Parameters
    ----------
    client:
        A connected :class:`AsyncQdrantClient`.
    collection_name:
        Name of the collection this provider owns.
    vector_name:
        Name of the dense vector field, the embedding model id.
    dimension:
        Size of the dense vectors.
    upsert_batch_size:
        Maximum points per upsert request.
    timeout:
        Deadline in seconds for each request; ``None`` disables it.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str,
        vector_name: str,
        dimension: int,
        upsert_batch_size: int = 100,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._collection_name = collection_name
        self._vector_name = vector_name
        self._dimension = dimension
        self._upsert_batch_size = max(1, upsert_batch_size)
        self._timeout = timeout
        self._collection_ready = False

    @classmethod
    def from_settings(cls, settings: Settings, vector_name: str, dimension: int) -> QdrantVectorStoreProvider:
        client = AsyncQdrantClient(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key or None,
        )
        return cls(
            client=client,
            collection_name=settings.qdrant_collection,
            vector_name=vector_name,
            dimension=dimension,
            upsert_batch_size=settings.qdrant_upsert_batch_size,
            timeout=settings.external_call_timeout,
        )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_collection(self) -> None:
        if self._collection_ready:
            return
        try:
            if not await self._collection_exists():
                await self._call(
                    self._client.create_collection(
                        collection_name=self._collection_name,
                        vectors_config={
                            self._vector_name: models.VectorParams(
                                size=self._dimension,
                                distance=models.Distance.COSINE,
                                hnsw_config=_HNSW_CONFIG,
                                on_disk=False,
                                datatype=models.Datatype.FLOAT32,
                            )
                        },
                        sparse_vectors_config={
                            SPARSE_VECTOR_NAME: models.SparseVectorParams(
                                index=models.SparseIndexParams(on_disk=True)
                            )
                        },
                        shard_number=1,
                        replication_factor=1,
                        write_consistency_factor=1,
                        on_disk_payload=True,
                    ),
                    "create_collection",
                )
                await self._call(
                    self._client.create_payload_index(
                        collection_name=self._collection_name,
                        field_name="doc_id",
                        field_schema=models.PayloadSchemaType.KEYWORD,
                        wait=True,
                    ),
                    "create_payload_index",
                )
                logger.info(
                    "qdrant_collection_created",
                    collection=self._collection_name,
                    vector_name=self._vector_name,
                    dimension=self._dimension,
                )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"Failed to ensure collection '{self._collection_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        self._collection_ready = True

    async def upsert_chunks(
        self,
        document_id: str,
        chunks: list[TextChunk],
        vectors: list[list[float]],
        filename: str | None = None,
    ) -> IndexingResult:
        if len(chunks) != len(vectors):
            raise ShapeMismatchError(chunks=len(chunks), vectors=len(vectors))

        await self.ensure_collection()
        points = build_points(document_id, chunks, vectors, filename)

        indexed = 0
        for start in range(0, len(points), self._upsert_batch_size):
            batch = points[start : start + self._upsert_batch_size]
            try:
                await self._call(
                    self._client.upsert(
                        collection_name=self._collection_name,
                        points=[
                            models.PointStruct(
                                id=p.id,
                                vector={self._vector_name: p.vector},
                                payload=p.payload.to_store(),
                            )
                            for p in batch
                        ],
                        wait=True,
                    ),
                    "upsert",
                )
            except VectorStoreError:
                raise
            except Exception as exc:
                raise VectorStoreError(
                    message=(
                        f"Upsert failed after {indexed} of {len(points)} points "
                        f"for document {document_id}: {exc}"
                    ),
                    provider_name=self.get_provider_name(),
                ) from exc
            indexed += len(batch)
            logger.debug(
                "qdrant_upsert_batch",
                document_id=document_id,
                batch_points=len(batch),
                indexed=indexed,
            )

        logger.info(
            "qdrant_upsert_complete",
            document_id=document_id,
            points=indexed,
            collection=self._collection_name,
        )
        return IndexingResult(
            points_indexed=indexed,
            collection_name=self._collection_name,
            message=f"Successfully indexed {indexed} chunks",
        )

    async def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float = 0.7,
        document_id: str | None = None,
    ) -> list[VectorSearchResult]:
        query_filter = self._document_filter(document_id) if document_id else None
        try:
            response = await self._call(
                self._client.query_points(
                    collection_name=self._collection_name,
                    query=query_vector,
                    using=self._vector_name,
                    limit=limit,
                    score_threshold=score_threshold,
                    query_filter=query_filter,
                    with_payload=True,
                ),
                "search",
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"Search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results: list[VectorSearchResult] = []
        for point in response.points:
            payload = parse_payload(str(point.id), point.payload)
            if payload is None:
                continue
            results.append(VectorSearchResult(id=str(point.id), score=point.score, payload=payload))
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    async def delete_by_document(self, document_id: str) -> None:
        try:
            if not await self._collection_exists():
                return
            await self._call(
                self._client.delete(
                    collection_name=self._collection_name,
                    points_selector=models.FilterSelector(filter=self._document_filter(document_id)),
                    wait=True,
                ),
                "delete",
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"Failed to delete points for document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("qdrant_delete_by_document", document_id=document_id)

    async def collection_info(self) -> CollectionInfo:
        try:
            info = await self._call(
                self._client.get_collection(collection_name=self._collection_name),
                "get_collection",
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"Failed to read collection '{self._collection_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        status = info.status.value if hasattr(info.status, "value") else str(info.status)
        return CollectionInfo(
            points_count=info.points_count or 0,
            indexed_vectors_count=info.indexed_vectors_count or 0,
            status=status,
        )

    async def health_check(self) -> bool:
        try:
            await self._call(self._client.get_collections(), "get_collections")
            return True
        except Exception as exc:
            logger.warning("qdrant_health_check_failed", error=str(exc))
            return False

    def get_collection_name(self) -> str:
        return self._collection_name

    def get_provider_name(self) -> str:
        return "qdrant"

    async def close(self) -> None:
        await self._client.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _collection_exists(self) -> bool:
        response = await self._call(self._client.get_collections(), "get_collections")
        return any(c.name == self._collection_name for c in response.collections)

    async def _call(self, awaitable, operation: str):  # noqa: ANN001, ANN202
        return await call_with_timeout(
            awaitable,
            self._timeout,
            lambda msg: VectorStoreError(message=msg, provider_name=self.get_provider_name()),
            operation,
        )

    @staticmethod
    def _document_filter(document_id: str) -> models.Filter:
        return models.Filter(
            must=[
                models.FieldCondition(
                    key="doc_id",
                    match=models.MatchValue(value=document_id),
                )
            ]
        )

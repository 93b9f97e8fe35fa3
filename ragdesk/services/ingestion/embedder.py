"""Batch embedding on top of an :class:`IEmbeddingProvider`.

The :class:`Embedder` filters blank inputs, partitions the remaining texts
into provider-sized groups, pauses briefly between groups to stay under
provider rate limits, and concatenates the vectors in input order.  A
failure in any group fails the whole batch; partial results are never
returned.

Also home to the embedding price and dimension tables used for cost
reporting and vector collection sizing.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from ragdesk.models.rag import BatchEmbeddingResult, EmbeddingBatch, EmbeddingVector
from ragdesk.utils.concurrency import call_with_timeout
from ragdesk.utils.errors import (
    EmbeddingServiceError,
    EmptyInputError,
    NoValidInputError,
    RagDeskError,
)

if TYPE_CHECKING:
    from ragdesk.interfaces.embedding_provider import IEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-large"

# USD per 1,000 tokens.
_PRICE_PER_1K_TOKENS: dict[str, float] = {
    "text-embedding-3-large": 0.00013,
    "text-embedding-3-small": 0.00002,
    "text-embedding-ada-002": 0.0001,
}

_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}


def embedding_cost(token_count: int, model: str = DEFAULT_EMBEDDING_MODEL) -> float:
    """Estimated cost in USD; unknown models are priced as ``3-large``."""
    price = _PRICE_PER_1K_TOKENS.get(model, _PRICE_PER_1K_TOKENS[DEFAULT_EMBEDDING_MODEL])
    return (token_count / 1000) * price


def embedding_dimensions(model: str = DEFAULT_EMBEDDING_MODEL) -> int:
    """Vector size produced by *model*; unknown models default to 3072."""
    return _DIMENSIONS.get(model, _DIMENSIONS[DEFAULT_EMBEDDING_MODEL])


class Embedder:
    """Converts single texts or batches of texts into embedding vectors.

    Parameters
    ----------
    provider:
        The embedding backend; one :meth:`IEmbeddingProvider.embed` call is
        made per group.
    batch_size:
        Default maximum number of texts per provider call.
    batch_delay:
        Seconds to sleep between consecutive groups (not after the last).
    timeout:
        Deadline in seconds for each provider call; ``None`` disables it.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = 100,
        batch_delay: float = 0.1,
        timeout: float | None = None,
    ) -> None:
        self._provider = provider
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay
        self._timeout = timeout

    @property
    def model(self) -> str:
        return self._provider.get_model()

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_one(self, text: str) -> EmbeddingVector:
        """Embed a single text.

        Raises
        ------
        EmptyInputError
            If *text* is empty or whitespace-only.
        EmbeddingServiceError
            If the provider call fails or times out.
        """
        if not text or not text.strip():
            raise EmptyInputError("Cannot embed empty text")

        batch = await self._call_provider([text])
        if len(batch.vectors) != 1:
            raise EmbeddingServiceError(
                message=f"Expected 1 embedding, received {len(batch.vectors)}",
                provider_name=self._provider.get_provider_name(),
            )
        return EmbeddingVector(embedding=batch.vectors[0], token_count=batch.tokens_used)

    async def embed_batch(
        self, texts: list[str], batch_size: int | None = None
    ) -> BatchEmbeddingResult:
        """Embed every non-blank text, preserving input order.

        Raises
        ------
        NoValidInputError
            If *texts* is empty or every entry is blank.
        EmbeddingServiceError
            If any group fails; no partial result is returned.
        """
        valid = [t for t in texts if t and t.strip()]
        if not valid:
            raise NoValidInputError()

        size = max(1, batch_size or self._batch_size)
        groups = [valid[i : i + size] for i in range(0, len(valid), size)]

        vectors: list[list[float]] = []
        total_tokens = 0
        for index, group in enumerate(groups):
            if index > 0 and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)
            batch = await self._call_provider(group)
            if len(batch.vectors) != len(group):
                raise EmbeddingServiceError(
                    message=(
                        f"Batch {index + 1} expected {len(group)} embeddings, "
                        f"received {len(batch.vectors)}"
                    ),
                    provider_name=self._provider.get_provider_name(),
                )
            vectors.extend(batch.vectors)
            total_tokens += batch.tokens_used
            logger.debug(
                "embedding_group_complete",
                group=index + 1,
                groups=len(groups),
                texts=len(group),
                tokens=batch.tokens_used,
            )

        logger.info(
            "embedding_batch_complete",
            texts=len(valid),
            skipped=len(texts) - len(valid),
            groups=len(groups),
            total_tokens=total_tokens,
            model=self.model,
        )
        return BatchEmbeddingResult(vectors=vectors, total_tokens=total_tokens, model=self.model)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _call_provider(self, texts: list[str]) -> EmbeddingBatch:
        provider_name = self._provider.get_provider_name()
        try:
            return await call_with_timeout(
                self._provider.embed(texts),
                self._timeout,
                lambda msg: EmbeddingServiceError(message=msg, provider_name=provider_name),
                "embedding request",
            )
        except RagDeskError:
            raise
        except Exception as exc:
            raise EmbeddingServiceError(
                message=f"Embedding request failed: {exc}",
                provider_name=provider_name,
            ) from exc

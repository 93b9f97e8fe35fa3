"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into embedding vectors.  One call to
:meth:`IEmbeddingProvider.embed` is one upstream request; batching across
requests is the job of :class:`~ragdesk.services.ingestion.embedder.Embedder`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragdesk.models.rag import EmbeddingBatch


# Concrete implementation: OpenAIEmbeddingProvider (ragdesk/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the retrieval pipeline."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> EmbeddingBatch:
        """Generate embedding vectors for *texts* in a single request.

        Parameters
        ----------
        texts:
            Non-empty strings to embed.  Callers are responsible for
            filtering blank entries and bounding the batch size.

        Returns
        -------
        EmbeddingBatch
            Vectors corresponding positionally to *texts* and the number of
            tokens the request consumed.

        Raises
        ------
        ragdesk.utils.errors.EmbeddingServiceError
            If the embedding API call fails.
        """

    @abstractmethod
    def get_model(self) -> str:
        """Return the embedding model identifier, e.g. ``"text-embedding-3-large"``."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must stay constant for the lifetime of the provider and match the
        vector size of the collection it feeds.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""

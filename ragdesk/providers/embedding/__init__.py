"""Embedding provider adapters.

One concrete implementation of IEmbeddingProvider
(ragdesk/interfaces/embedding_provider.py):
    - OpenAIEmbeddingProvider -- text-embedding-3-large by default, or any
      OpenAI-compatible embeddings endpoint via OPENAI_BASE_URL

main.py wraps the provider in an Embedder (ragdesk/services/ingestion/embedder.py),
which owns batching, pacing and timeouts.
"""

from ragdesk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]

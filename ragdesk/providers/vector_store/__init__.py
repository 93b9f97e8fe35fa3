"""Vector store provider implementations.

Qdrant is the production vector store.  InMemoryVectorStoreProvider keeps
points in process memory and is selected with VECTOR_STORE_BACKEND=memory
for local development without a Qdrant server.
"""

from ragdesk.providers.vector_store.memory_provider import InMemoryVectorStoreProvider
from ragdesk.providers.vector_store.qdrant_provider import QdrantVectorStoreProvider

__all__ = ["InMemoryVectorStoreProvider", "QdrantVectorStoreProvider"]

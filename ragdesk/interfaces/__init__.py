"""Interfaces for every external collaborator ragdesk talks to.

Business logic depends only on these abstract classes; concrete adapters
live in ``ragdesk/providers/`` and are wired together in ``ragdesk/main.py``.

    Interface              ->  Concrete implementations
    -------------------------------------------------------------
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider
    ILLMProvider           ->  AnthropicLLMProvider
    IVectorStoreProvider   ->  QdrantVectorStoreProvider,
                               InMemoryVectorStoreProvider
    IBlobStore             ->  S3BlobStore
    IRecordStore           ->  SQLiteRecordStore
"""

from ragdesk.interfaces.blob_store import BlobRef, IBlobStore
from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.interfaces.llm_provider import ChatTurn, ILLMProvider
from ragdesk.interfaces.record_store import ChatRow, IRecordStore
from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "BlobRef",
    "ChatRow",
    "ChatTurn",
    "IBlobStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IRecordStore",
    "IVectorStoreProvider",
]

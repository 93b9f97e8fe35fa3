"""Document ingestion pipeline for the ragdesk vector index.

Orchestrates the pipeline: **chunk -> embed -> index**.

1. **Chunk** (chunker.py / RecursiveTextChunker) -- splits raw document
   text into overlapping windows on a separator hierarchy, keeping exact
   source offsets.

2. **Embed** (embedder.py / Embedder) -- embeds chunk texts in
   rate-paced batches through an IEmbeddingProvider and reports token
   usage and estimated cost.

3. **Index** (via IVectorStoreProvider) -- replaces the document's points
   in the vector database.

The IngestionService class runs all three for one document and keeps the
document status (PENDING -> PROCESSING -> INDEXED | ERROR) in step.
"""

from ragdesk.services.ingestion.chunker import RecursiveTextChunker, chunking_stats
from ragdesk.services.ingestion.embedder import Embedder, embedding_cost, embedding_dimensions
from ragdesk.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "Embedder",
    "IngestionService",
    "RecursiveTextChunker",
    "chunking_stats",
    "embedding_cost",
    "embedding_dimensions",
]

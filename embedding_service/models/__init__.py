"""Domain models: re-exports all public model classes.

The models are organized by concern:
    - embedding.py: persisted documents, search results, ingestion outcomes,
      and the start-up index state
    - vector.py   : backend-neutral rows exchanged with the vector index
    - ollama.py   : request/response schemas for the Ollama HTTP API
"""

from __future__ import annotations

from embedding_service.models.embedding import (
    BulkItemOutcome,
    CreatedEmbedding,
    EmbeddingDocument,
    IndexState,
    ScoredDocument,
    SearchResult,
)
from embedding_service.models.ollama import (
    OllamaEmbedRequest,
    OllamaEmbedResponse,
    OllamaModelInfo,
    OllamaModelsResponse,
)
from embedding_service.models.vector import (
    IndexSchema,
    SimilarityMetric,
    VectorHit,
    VectorRecord,
)

__all__ = [
    "BulkItemOutcome",
    "CreatedEmbedding",
    "EmbeddingDocument",
    "IndexSchema",
    "IndexState",
    "OllamaEmbedRequest",
    "OllamaEmbedResponse",
    "OllamaModelInfo",
    "OllamaModelsResponse",
    "ScoredDocument",
    "SearchResult",
    "SimilarityMetric",
    "VectorHit",
    "VectorRecord",
]

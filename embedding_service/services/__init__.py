"""Core services: the embedding store and the two orchestrators built on it.

- **embedding_store** -- document schema, index initialisation, k-NN search.
- **similarity_search_service** -- query -> embed -> nearest neighbours.
- **ingestion_service** -- create / get / delete / bulk create.
"""

from embedding_service.services.embedding_store import EmbeddingStore, initialize_index
from embedding_service.services.ingestion_service import IngestionService
from embedding_service.services.similarity_search_service import SimilaritySearchService

__all__ = [
    "EmbeddingStore",
    "IngestionService",
    "SimilaritySearchService",
    "initialize_index",
]

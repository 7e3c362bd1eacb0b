"""Public interface definitions for the external services the core depends on.

The embedding model endpoint and the vector index are accessed exclusively
through the abstract base classes defined here.  Concrete adapters live in
``embedding_service/providers/`` and are chosen in ``embedding_service/main.py``
at start-up, so unit tests can inject in-memory fakes.

    Interface              →  Concrete implementations
    ───────────────────────────────────────────────────
    IEmbeddingProvider     →  OllamaEmbeddingProvider, OpenAIEmbeddingProvider
    IVectorStoreProvider   →  ChromaDBProvider
"""

from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
from embedding_service.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "IVectorStoreProvider",
]

"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
These vectors are stored in the vector index and compared at query time.

Two implementations of IEmbeddingProvider:
    1. OllamaEmbeddingProvider: nomic-embed-text via Ollama's native
       /api/embed endpoint (768 dims).  Free and local; the default.
    2. OpenAIEmbeddingProvider: any OpenAI-compatible embeddings API.
       Requires an API key; model and dimension come from settings.
"""

from embedding_service.providers.embedding.ollama_embedding_provider import (
    OllamaEmbeddingProvider,
)
from embedding_service.providers.embedding.openai_embedding_provider import (
    OpenAIEmbeddingProvider,
)

__all__ = ["OllamaEmbeddingProvider", "OpenAIEmbeddingProvider"]

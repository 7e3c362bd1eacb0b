"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap Ollama's native ``/api/embed`` endpoint or any
OpenAI-compatible embeddings API; the services depend only on this
interface, so providers are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (embedding_service/providers/embedding/):
#   OllamaEmbeddingProvider: nomic-embed-text (768 dims) via Ollama, default
#   OpenAIEmbeddingProvider: any OpenAI-compatible embeddings endpoint
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and search.

    Embeddings are persisted by
    :class:`~embedding_service.services.embedding_store.EmbeddingStore` and
    compared at query time by the vector index.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        embedding_service.utils.errors.ProviderUnavailableError
            If the model endpoint is unreachable, times out, or answers
            with a non-success status.
        embedding_service.utils.errors.EmptyResultError
            If the endpoint answers successfully but returns fewer vectors
            than texts (typically zero), an empty vector, or vectors of
            differing lengths.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Convenience wrapper around :meth:`embed` used for both document
        creation and query embedding.  Raises the same errors.
        """

    @abstractmethod
    async def ensure_model_available(self) -> bool:
        """Check that the configured model is present on the provider.

        Advisory only: implementations log a warning and return ``False``
        on any failure instead of raising, because a missing model is
        detected again at call time anyway.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality ``D`` of the embedding vectors.

        This value must remain constant for the lifetime of the provider
        instance and must match the dimension of the vector index.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"ollama_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Checks configuration only (base URL, API key, model name); it does
        not perform a network round trip.
        """

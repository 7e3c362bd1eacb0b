"""Semantic similarity search over stored embeddings.

Embeds the query text with the configured :class:`IEmbeddingProvider`, asks
the :class:`EmbeddingStore` for the nearest neighbours and projects each hit
into a :class:`SearchResult`.  Ordering and scores come straight from the
index; this service never re-sorts.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from embedding_service.models.embedding import SearchResult
from embedding_service.utils.errors import InvalidArgumentError

if TYPE_CHECKING:
    from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
    from embedding_service.services.embedding_store import EmbeddingStore

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_TOP_K = 5


class SimilaritySearchService:
    """Answers "which stored texts are most like this one?".

    Parameters
    ----------
    embedding_provider:
        Embeds the query text.
    store:
        Runs the k-NN search.
    default_top_k:
        Used when the caller does not say how many results it wants.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        store: EmbeddingStore,
        default_top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._store = store
        self._default_top_k = default_top_k

    async def search(self, query: str, top_k: int | None = None) -> list[SearchResult]:
        """Return up to *top_k* results for *query*, most similar first.

        Raises
        ------
        InvalidArgumentError
            If *query* is empty or whitespace, or *top_k* is negative.
            Raised before any outbound call.
        """
        if not query or not query.strip():
            raise InvalidArgumentError(message="Query must not be empty")
        if top_k is None:
            top_k = self._default_top_k
        if top_k < 0:
            raise InvalidArgumentError(message=f"topK must be >= 0, got {top_k}")
        if top_k == 0:
            return []

        start = time.monotonic()
        query_vector = await self._embedding_provider.embed_single(query)
        hits = await self._store.search_by_similarity(query_vector, top_k)

        results = [
            SearchResult(
                id=hit.document.id,
                text=hit.document.text,
                score=hit.score,
                metadata=hit.document.metadata,
            )
            for hit in hits
        ]
        logger.info(
            "similarity_search",
            query_length=len(query),
            top_k=top_k,
            results_count=len(results),
            top_score=results[0].score if results else 0.0,
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return results

"""End-to-end lifecycle tests against a real embedded ChromaDB index.

Only the embedding model is replaced (by the deterministic keyword
embedder); index initialisation, storage, k-NN search and deletion all go
through :class:`ChromaDBProvider`.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from embedding_service.models.vector import IndexSchema, SimilarityMetric
from embedding_service.providers.vector_store.chromadb_provider import ChromaDBProvider
from embedding_service.services.embedding_store import EmbeddingStore, initialize_index
from embedding_service.services.ingestion_service import IngestionService
from embedding_service.services.similarity_search_service import SimilaritySearchService
from embedding_service.utils.errors import ConfigurationError, NotFoundError
from tests.conftest import TEST_DIMENSION, KeywordEmbeddingProvider

_INDEX = "lifecycle_embeddings"


def _schema(dimension: int = TEST_DIMENSION, metric: SimilarityMetric = SimilarityMetric.COSINE) -> IndexSchema:
    return IndexSchema(name=_INDEX, dimension=dimension, metric=metric)


async def _services(
    chroma: ChromaDBProvider,
) -> tuple[IngestionService, SimilaritySearchService, EmbeddingStore]:
    provider = KeywordEmbeddingProvider()
    state = await initialize_index(chroma, _schema())
    store = EmbeddingStore(chroma, state)
    return (
        IngestionService(provider, store, max_concurrency=4),
        SimilaritySearchService(provider, store),
        store,
    )


@pytest.fixture
def chroma(tmp_path: Path) -> ChromaDBProvider:
    return ChromaDBProvider(persist_directory=str(tmp_path / "chroma"))


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_ai_query_ranks_ai_documents_first(self, chroma: ChromaDBProvider) -> None:
        ingestion, search, _store = await _services(chroma)
        ml = await ingestion.create("Machine learning is a subset of artificial intelligence")
        dl = await ingestion.create("Deep learning uses neural networks")
        weather = await ingestion.create("The weather is nice today")

        results = await search.search("What is artificial intelligence?", top_k=2)

        assert {r.id for r in results} == {ml.id, dl.id}
        assert weather.id not in {r.id for r in results}
        assert results[0].score >= results[1].score
        assert results[1].score > 0.9

    @pytest.mark.asyncio
    async def test_create_get_delete(self, chroma: ChromaDBProvider) -> None:
        ingestion, _search, store = await _services(chroma)

        created = await ingestion.create("ocean waves", {"source": "poem", "lang": "en"})
        document = await ingestion.get(created.id)

        assert document.text == "ocean waves"
        assert document.metadata == {"source": "poem", "lang": "en"}
        assert document.vector == pytest.approx(created.vector)
        assert await store.count() == 1

        assert await ingestion.delete(created.id) is True
        with pytest.raises(NotFoundError):
            await ingestion.get(created.id)
        assert await ingestion.delete(created.id) is False

    @pytest.mark.asyncio
    async def test_deleted_documents_leave_search(self, chroma: ChromaDBProvider) -> None:
        ingestion, search, _store = await _services(chroma)
        gone = await ingestion.create("rain on the sea shore")
        kept = await ingestion.create("sunny weather forecast")

        await ingestion.delete(gone.id)
        results = await search.search("sea", top_k=5)

        assert [r.id for r in results] == [kept.id]

    @pytest.mark.asyncio
    async def test_delete_all_then_empty_search(self, chroma: ChromaDBProvider) -> None:
        ingestion, search, store = await _services(chroma)
        outcomes = await ingestion.create_many([(f"text number {n}", None) for n in range(10)])
        assert all(o.succeeded for o in outcomes)

        assert await ingestion.delete_all() == 10
        assert await store.count() == 0
        assert await search.search("text", top_k=3) == []

    @pytest.mark.asyncio
    async def test_documents_persist_across_restart(self, tmp_path: Path) -> None:
        path = str(tmp_path / "chroma")
        ingestion, _search, _store = await _services(ChromaDBProvider(persist_directory=path))
        created = await ingestion.create("Deep learning uses neural networks")

        reopened = ChromaDBProvider(persist_directory=path)
        state = await initialize_index(reopened, _schema())
        store = EmbeddingStore(reopened, state)

        assert state.created is False
        document = await store.get(created.id)
        assert document is not None
        assert document.text == "Deep learning uses neural networks"

    @pytest.mark.asyncio
    async def test_restart_with_other_dimension_is_refused(self, tmp_path: Path) -> None:
        path = str(tmp_path / "chroma")
        await initialize_index(ChromaDBProvider(persist_directory=path), _schema())

        with pytest.raises(ConfigurationError):
            await initialize_index(ChromaDBProvider(persist_directory=path), _schema(dimension=768))

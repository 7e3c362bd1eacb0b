"""Unit tests for the ChromaDB vector index adapter.

Runs against a real embedded ``PersistentClient`` in a temporary directory,
so collection metadata, distance conversion and paging are the library's
actual behaviour.
"""

from __future__ import annotations

import asyncio
import warnings
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from chromadb.utils.embedding_functions import known_embedding_functions

from embedding_service.models.vector import IndexSchema, SimilarityMetric, VectorRecord
from embedding_service.providers.vector_store.chromadb_provider import (
    ChromaDBProvider,
    _NoopEmbeddingFunction,
)
from embedding_service.utils.errors import IndexWriteFailedError, SearchFailedError

_INDEX = "unit_index"


@pytest.fixture
def provider(tmp_path: Path) -> ChromaDBProvider:
    return ChromaDBProvider(persist_directory=str(tmp_path / "chroma"))


def _schema(metric: SimilarityMetric = SimilarityMetric.COSINE, dimension: int = 3) -> IndexSchema:
    return IndexSchema(name=_INDEX, dimension=dimension, metric=metric)


def _record(record_id: str, vector: list[float], text: str = "", **fields: str) -> VectorRecord:
    return VectorRecord(id=record_id, vector=vector, document=text or record_id, fields=fields)


class TestIndexLifecycle:
    @pytest.mark.asyncio
    async def test_missing_index_has_no_schema(self, provider: ChromaDBProvider) -> None:
        assert await provider.get_index_schema(_INDEX) is None

    @pytest.mark.asyncio
    async def test_create_records_metric_and_dimension(self, provider: ChromaDBProvider) -> None:
        assert await provider.create_index(_schema(SimilarityMetric.L2, dimension=4)) is True

        schema = await provider.get_index_schema(_INDEX)
        assert schema == IndexSchema(name=_INDEX, dimension=4, metric=SimilarityMetric.L2)

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, provider: ChromaDBProvider) -> None:
        assert await provider.create_index(_schema()) is True
        assert await provider.create_index(_schema()) is False

    @pytest.mark.asyncio
    async def test_schema_survives_new_client(self, tmp_path: Path) -> None:
        path = str(tmp_path / "chroma")
        first = ChromaDBProvider(persist_directory=path)
        await first.create_index(_schema(SimilarityMetric.DOT_PRODUCT, dimension=5))

        second = ChromaDBProvider(persist_directory=path)
        schema = await second.get_index_schema(_INDEX)
        assert schema is not None
        assert schema.metric is SimilarityMetric.DOT_PRODUCT
        assert schema.dimension == 5

    @pytest.mark.asyncio
    async def test_dimension_inferred_for_unlabelled_collection(
        self, provider: ChromaDBProvider
    ) -> None:
        collection = provider._client.create_collection(
            name=_INDEX, embedding_function=_NoopEmbeddingFunction()
        )
        collection.add(ids=["a"], embeddings=[[0.1, 0.2, 0.3, 0.4, 0.5, 0.6]], documents=["a"])

        schema = await provider.get_index_schema(_INDEX)
        assert schema is not None
        assert schema.dimension == 6
        assert schema.metric is SimilarityMetric.L2


class TestRecords:
    @pytest.mark.asyncio
    async def test_upsert_then_get(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        await provider.upsert(
            _INDEX, _record("doc-1", [1.0, 0.0, 0.0], "hello", created_at="2026-01-01T00:00:00+00:00")
        )

        record = await provider.get(_INDEX, "doc-1")
        assert record is not None
        assert record.document == "hello"
        assert record.vector == pytest.approx([1.0, 0.0, 0.0])
        assert record.fields == {"created_at": "2026-01-01T00:00:00+00:00"}

    @pytest.mark.asyncio
    async def test_record_without_fields(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        await provider.upsert(_INDEX, _record("bare", [0.0, 1.0, 0.0]))

        record = await provider.get(_INDEX, "bare")
        assert record is not None
        assert record.fields == {}

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        assert await provider.get(_INDEX, "nope") is None

    @pytest.mark.asyncio
    async def test_delete_reports_existence(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        await provider.upsert(_INDEX, _record("doc-1", [1.0, 0.0, 0.0]))

        assert await provider.delete(_INDEX, "doc-1") is True
        assert await provider.delete(_INDEX, "doc-1") is False
        assert await provider.get(_INDEX, "doc-1") is None

    @pytest.mark.asyncio
    async def test_concurrent_deletes_of_one_id_both_succeed(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        await provider.upsert(_INDEX, _record("doc-1", [1.0, 0.0, 0.0]))

        results = await asyncio.gather(
            provider.delete(_INDEX, "doc-1"), provider.delete(_INDEX, "doc-1")
        )

        assert True in results
        assert await provider.get(_INDEX, "doc-1") is None
        assert await provider.count(_INDEX) == 0

    @pytest.mark.asyncio
    async def test_delete_all_counts_and_empties(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        for n in range(7):
            await provider.upsert(_INDEX, _record(f"doc-{n}", [1.0, float(n), 0.0]))

        assert await provider.delete_all(_INDEX) == 7
        assert await provider.count(_INDEX) == 0
        assert await provider.delete_all(_INDEX) == 0

    @pytest.mark.asyncio
    async def test_count_of_missing_index_is_zero(self, provider: ChromaDBProvider) -> None:
        assert await provider.count("never_created") == 0

    @pytest.mark.asyncio
    async def test_write_to_missing_index_fails(self, provider: ChromaDBProvider) -> None:
        with pytest.raises(IndexWriteFailedError) as exc_info:
            await provider.upsert("never_created", _record("x", [1.0, 0.0, 0.0]))
        assert exc_info.value.provider_name == "chromadb"

    @pytest.mark.asyncio
    async def test_wrong_dimension_write_fails(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        await provider.upsert(_INDEX, _record("ok", [1.0, 0.0, 0.0]))
        with pytest.raises(IndexWriteFailedError):
            await provider.upsert(_INDEX, _record("bad", [1.0, 0.0]))


class TestKnnSearch:
    @pytest.mark.asyncio
    async def test_cosine_ordering_and_scores(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        await provider.upsert(_INDEX, _record("same", [1.0, 0.0, 0.0], lang="en"))
        await provider.upsert(_INDEX, _record("close", [0.9, 0.1, 0.0]))
        await provider.upsert(_INDEX, _record("orthogonal", [0.0, 0.0, 1.0]))

        hits = await provider.knn_search(_INDEX, [1.0, 0.0, 0.0], k=2, num_candidates=100)

        assert [hit.record.id for hit in hits] == ["same", "close"]
        assert hits[0].score == pytest.approx(1.0, abs=1e-4)
        assert hits[0].score >= hits[1].score
        assert hits[0].record.fields == {"lang": "en"}

    @pytest.mark.asyncio
    async def test_l2_scores_are_bounded(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema(SimilarityMetric.L2))
        await provider.upsert(_INDEX, _record("near", [1.0, 0.0, 0.0]))
        await provider.upsert(_INDEX, _record("far", [10.0, 10.0, 10.0]))

        hits = await provider.knn_search(_INDEX, [1.0, 0.0, 0.0], k=5, num_candidates=5)

        assert [hit.record.id for hit in hits] == ["near", "far"]
        assert all(0.0 < hit.score <= 1.0 for hit in hits)

    @pytest.mark.asyncio
    async def test_empty_index_returns_nothing(self, provider: ChromaDBProvider) -> None:
        await provider.create_index(_schema())
        assert await provider.knn_search(_INDEX, [1.0, 0.0, 0.0], k=3, num_candidates=10) == []

    @pytest.mark.asyncio
    async def test_zero_k_returns_nothing(self, provider: ChromaDBProvider) -> None:
        assert await provider.knn_search(_INDEX, [1.0, 0.0, 0.0], k=0, num_candidates=10) == []

    @pytest.mark.asyncio
    async def test_missing_index_search_fails(self, provider: ChromaDBProvider) -> None:
        with pytest.raises(SearchFailedError):
            await provider.knn_search("never_created", [1.0, 0.0, 0.0], k=1, num_candidates=1)


class TestHelpers:
    @pytest.mark.parametrize(
        ("distance", "metric", "expected"),
        [
            (0.0, SimilarityMetric.COSINE, 1.0),
            (1.0, SimilarityMetric.COSINE, 0.0),
            (0.25, SimilarityMetric.DOT_PRODUCT, 0.75),
            (0.0, SimilarityMetric.L2, 1.0),
            (3.0, SimilarityMetric.L2, 0.25),
        ],
    )
    def test_distance_to_score(
        self, distance: float, metric: SimilarityMetric, expected: float
    ) -> None:
        assert ChromaDBProvider._distance_to_score(distance, metric) == pytest.approx(expected)

    def test_stringify(self) -> None:
        assert ChromaDBProvider._stringify({"a": 1, "b": True, "c": None}) == {"a": "1", "b": "True"}
        assert ChromaDBProvider._stringify(None) == {}

    def test_is_available_uses_heartbeat(self) -> None:
        client = MagicMock()
        assert ChromaDBProvider(client=client).is_available() is True
        client.heartbeat.side_effect = ConnectionError("down")
        assert ChromaDBProvider(client=client).is_available() is False

    def test_noop_embedding_function_refuses_to_embed(self) -> None:
        with pytest.raises(NotImplementedError):
            _NoopEmbeddingFunction()(["text"])

    def test_noop_embedding_function_has_serialisable_config(self) -> None:
        function = _NoopEmbeddingFunction()

        assert function.is_legacy() is False
        assert function.get_config() == {}
        assert isinstance(_NoopEmbeddingFunction.build_from_config({}), _NoopEmbeddingFunction)
        assert known_embedding_functions[_NoopEmbeddingFunction.name()] is _NoopEmbeddingFunction

    @pytest.mark.asyncio
    async def test_collection_calls_do_not_warn_about_embedding_config(
        self, provider: ChromaDBProvider, recwarn: pytest.WarningsRecorder
    ) -> None:
        warnings.simplefilter("always", DeprecationWarning)
        await provider.create_index(_schema())
        await provider.upsert(_INDEX, _record("doc-1", [1.0, 0.0, 0.0]))
        await provider.get(_INDEX, "doc-1")
        await provider.knn_search(_INDEX, [1.0, 0.0, 0.0], k=1, num_candidates=1)

        config_warnings = [
            w for w in recwarn.list
            if issubclass(w.category, DeprecationWarning)
            and ("get_config" in str(w.message) or "legacy embedding function" in str(w.message))
        ]
        assert config_warnings == []

"""Shared pytest fixtures for the embedding service test suite."""

from __future__ import annotations

import hashlib
import math
import re
from typing import Any

import pytest

from embedding_service.config.settings import Settings
from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
from embedding_service.interfaces.vector_store_provider import IVectorStoreProvider
from embedding_service.models.embedding import IndexState
from embedding_service.models.vector import (
    IndexSchema,
    SimilarityMetric,
    VectorHit,
    VectorRecord,
)
from embedding_service.services.embedding_store import EmbeddingStore
from embedding_service.services.ingestion_service import IngestionService
from embedding_service.services.similarity_search_service import SimilaritySearchService
from embedding_service.utils.errors import (
    IndexWriteFailedError,
    ProviderUnavailableError,
    SearchFailedError,
)

TEST_DIMENSION = 16
TEST_INDEX = "test_embeddings"


def make_settings(**overrides: Any) -> Settings:
    """Build a Settings instance with sensible test defaults."""
    defaults: dict[str, Any] = {
        "embedding_provider": "ollama",
        "ollama_base_url": "http://ollama.test:11434",
        "embedding_model": "nomic-embed-text",
        "embedding_dimension": TEST_DIMENSION,
        "openai_api_key": "",
        "openai_base_url": "",
        "vector_index_name": TEST_INDEX,
        "similarity_metric": "cosine",
        "chromadb_mode": "persistent",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ---------------------------------------------------------------------------
# Deterministic embedding provider
# ---------------------------------------------------------------------------

# Words sharing a concept land on the same axis, so texts about the same
# topic score high against each other and unrelated topics score ~0.
_CONCEPTS: dict[str, set[str]] = {
    "ai": {
        "ai", "artificial", "intelligence", "machine", "learning", "deep",
        "neural", "network", "networks", "model", "models",
    },
    "weather": {"weather", "sunny", "rain", "nice", "today", "forecast", "cloudy"},
    "sea": {"sea", "ocean", "wave", "waves", "tide", "shore"},
}
_STOP_WORDS = {
    "a", "an", "the", "is", "are", "of", "what", "uses", "to", "and", "in", "on", "for",
}


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """Bag-of-concepts embedder: deterministic, offline, semantically coarse.

    The first ``len(_CONCEPTS)`` axes are concept axes; every other word is
    hashed into one of the remaining buckets.  ``calls`` counts embed calls
    so tests can assert that invalid input never reaches the provider.
    """

    def __init__(self, dimension: int = TEST_DIMENSION) -> None:
        self._dimension = dimension
        self._concept_axes = {name: axis for axis, name in enumerate(_CONCEPTS)}
        self.calls = 0
        self.fail_with: Exception | None = None

    def vector_for(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in re.findall(r"[a-z]+", text.lower()):
            if word in _STOP_WORDS:
                continue
            axis = next(
                (self._concept_axes[name] for name, words in _CONCEPTS.items() if word in words),
                None,
            )
            if axis is None:
                digest = hashlib.md5(word.encode()).digest()
                free = self._dimension - len(_CONCEPTS)
                axis = len(_CONCEPTS) + digest[0] % free
            vector[axis] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            vector[-1] = 1.0
            return vector
        return [v / norm for v in vector]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return [self.vector_for(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    async def ensure_model_available(self) -> bool:
        return True

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "keyword_embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# In-memory vector index
# ---------------------------------------------------------------------------


class InMemoryVectorStore(IVectorStoreProvider):
    """Exact k-NN over plain dicts; mirrors the ChromaDB adapter's contract.

    Set ``fail_upserts`` / ``fail_searches`` to make the next calls fail the
    way a rejecting backend would.
    """

    def __init__(self) -> None:
        self.schemas: dict[str, IndexSchema] = {}
        self.records: dict[str, dict[str, VectorRecord]] = {}
        self.create_calls = 0
        self.last_num_candidates: int | None = None
        self.fail_upserts = False
        self.fail_searches = False

    def add_index(self, schema: IndexSchema) -> None:
        self.schemas[schema.name] = schema
        self.records.setdefault(schema.name, {})

    def _rows(self, index_name: str) -> dict[str, VectorRecord]:
        if index_name not in self.records:
            raise IndexWriteFailedError(
                message=f"Index '{index_name}' does not exist", provider_name="memory"
            )
        return self.records[index_name]

    async def get_index_schema(self, index_name: str) -> IndexSchema | None:
        return self.schemas.get(index_name)

    async def create_index(self, schema: IndexSchema) -> bool:
        self.create_calls += 1
        if schema.name in self.schemas:
            return False
        self.add_index(schema)
        return True

    async def upsert(self, index_name: str, record: VectorRecord) -> None:
        if self.fail_upserts:
            raise IndexWriteFailedError(message="upsert rejected", provider_name="memory")
        self._rows(index_name)[record.id] = record

    async def get(self, index_name: str, record_id: str) -> VectorRecord | None:
        return self._rows(index_name).get(record_id)

    async def delete(self, index_name: str, record_id: str) -> bool:
        return self._rows(index_name).pop(record_id, None) is not None

    async def delete_all(self, index_name: str) -> int:
        rows = self._rows(index_name)
        count = len(rows)
        rows.clear()
        return count

    async def knn_search(
        self,
        index_name: str,
        vector: list[float],
        k: int,
        num_candidates: int,
    ) -> list[VectorHit]:
        if self.fail_searches:
            raise SearchFailedError(message="search rejected", provider_name="memory")
        self.last_num_candidates = num_candidates
        hits = [
            VectorHit(record=record, score=_cosine(vector, record.vector))
            for record in self._rows(index_name).values()
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:k]

    async def count(self, index_name: str) -> int:
        return len(self.records.get(index_name, {}))

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def test_config() -> dict[str, Any]:
    """Resolved configuration dict as produced by ``load_config``."""
    return {
        "search": {"default_top_k": 5, "min_candidates": 100},
        "bulk": {"max_concurrency": 4},
        "cors": {"allowed_origins": ["*"]},
    }


@pytest.fixture
def embedding_provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def index_schema() -> IndexSchema:
    return IndexSchema(name=TEST_INDEX, dimension=TEST_DIMENSION, metric=SimilarityMetric.COSINE)


@pytest.fixture
def vector_store(index_schema: IndexSchema) -> InMemoryVectorStore:
    store = InMemoryVectorStore()
    store.add_index(index_schema)
    return store


@pytest.fixture
def index_state(index_schema: IndexSchema) -> IndexState:
    return IndexState(
        index_name=index_schema.name,
        dimension=index_schema.dimension,
        metric=index_schema.metric,
    )


@pytest.fixture
def embedding_store(vector_store: InMemoryVectorStore, index_state: IndexState) -> EmbeddingStore:
    return EmbeddingStore(vector_store, index_state)


@pytest.fixture
def ingestion_service(
    embedding_provider: KeywordEmbeddingProvider,
    embedding_store: EmbeddingStore,
) -> IngestionService:
    return IngestionService(embedding_provider, embedding_store, max_concurrency=4)


@pytest.fixture
def search_service(
    embedding_provider: KeywordEmbeddingProvider,
    embedding_store: EmbeddingStore,
) -> SimilaritySearchService:
    return SimilaritySearchService(embedding_provider, embedding_store)


@pytest.fixture
def unavailable_error() -> ProviderUnavailableError:
    return ProviderUnavailableError(
        message="Connection refused", provider_name="keyword_embedding"
    )

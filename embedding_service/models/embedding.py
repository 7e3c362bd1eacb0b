"""Domain models for the embedding lifecycle and similarity search.

Defines Pydantic v2 models for the persisted document, search results,
ingestion outcomes, and the index state produced at start-up.  All models
use frozen config: a document's text, vector and metadata never change
once it has been created (there is no update operation; changing text
means delete + recreate because the vector is derived from the text).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from embedding_service.models.vector import SimilarityMetric


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# EmbeddingDocument: the persisted unit.
# ---------------------------------------------------------------------------
class EmbeddingDocument(BaseModel):
    """A piece of source text together with its embedding vector.

    Created by :class:`~embedding_service.services.ingestion_service.IngestionService`
    after a successful embed, written once by the store, read-only thereafter.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="Opaque unique identifier (UUID4).")
    text: str = Field(description="The original source text.")
    vector: list[float] = Field(description="Embedding vector of fixed length D.")
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="UTC timestamp at which the document was created.",
    )
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Arbitrary caller-supplied key/value pairs.",
    )


# ---------------------------------------------------------------------------
# ScoredDocument: a k-NN hit as returned by the store.
# ---------------------------------------------------------------------------
class ScoredDocument(BaseModel):
    """A stored document plus the similarity score reported by the index."""

    model_config = ConfigDict(frozen=True)

    document: EmbeddingDocument
    score: float = Field(description="Similarity score; higher means more similar.")


# ---------------------------------------------------------------------------
# SearchResult: the projection handed back to search callers.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A search hit projected for API consumers (no vector)."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    score: float
    metadata: dict[str, str] = Field(default_factory=dict)


class CreatedEmbedding(BaseModel):
    """Result of a successful create: assigned id, vector, and echoed text."""

    model_config = ConfigDict(frozen=True)

    id: str
    vector: list[float]
    text: str


class BulkItemOutcome(BaseModel):
    """Outcome of one item in a bulk create.

    Exactly one of ``id`` / ``error`` is set.  ``position`` is the item's
    index in the submitted batch, so callers can retry only the failures.
    """

    model_config = ConfigDict(frozen=True)

    position: int = Field(ge=0)
    id: str | None = None
    error: str | None = None
    error_type: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.id is not None


# ---------------------------------------------------------------------------
# IndexState: what start-up learned about the backing index.
# ---------------------------------------------------------------------------
class IndexState(BaseModel):
    """Snapshot of the backing index produced by ``initialize_index``.

    Built once during application start-up and injected into the
    :class:`~embedding_service.services.embedding_store.EmbeddingStore`.
    """

    model_config = ConfigDict(frozen=True)

    index_name: str
    dimension: int = Field(gt=0)
    metric: SimilarityMetric
    created: bool = Field(
        default=False,
        description="True if this process created the index, False if it already existed.",
    )
    initialized_at: datetime = Field(default_factory=_utcnow)

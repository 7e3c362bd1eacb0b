"""Backend-neutral records exchanged with the vector index.

The store layer (:mod:`embedding_service.services.embedding_store`) owns the
document schema and maps :class:`EmbeddingDocument` objects onto these
flat records; vector-index adapters only ever see ``VectorRecord`` rows,
so swapping ChromaDB for another backend does not touch the domain model.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SimilarityMetric(str, Enum):
    """Distance function the index is built with.

    Values match ChromaDB's ``hnsw:space`` collection setting.
    """

    COSINE = "cosine"
    DOT_PRODUCT = "ip"
    L2 = "l2"


class IndexSchema(BaseModel):
    """Schema binding an index name to a vector dimension and metric."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    dimension: int | None = Field(
        default=None,
        gt=0,
        description="Vector length; None when an existing index does not record it.",
    )
    metric: SimilarityMetric = SimilarityMetric.COSINE


class VectorRecord(BaseModel):
    """One row of the vector index: id, vector, source text and flat string fields."""

    model_config = ConfigDict(frozen=True)

    id: str
    vector: list[float]
    document: str
    fields: dict[str, str] = Field(default_factory=dict)


class VectorHit(BaseModel):
    """A k-NN match with the similarity score derived from the index distance."""

    model_config = ConfigDict(frozen=True)

    record: VectorRecord
    score: float

"""Pydantic request/response schemas for the embedding service API.

Defines the public contract for every REST endpoint: create, fetch and
delete embeddings, bulk create, similarity search and health.

JSON keys are camelCase on the wire (``topK``, ``createdAt``,
``deletedCount``) while Python code uses snake_case; ``_CamelModel``
handles the translation in both directions.  Request text fields default
to ``""`` so a missing or blank text reaches the service and is rejected
there with a 400, the same as whitespace-only text.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


class CreateEmbeddingRequest(_CamelModel):
    """Text to embed and store, with optional string metadata."""

    text: str = ""
    metadata: dict[str, str] | None = None


class CreateEmbeddingResponse(_CamelModel):
    """Returned after a successful create."""

    id: str
    embedding: list[float]
    text: str


class EmbeddingDocumentResponse(_CamelModel):
    """A stored document as returned by ``GET /embeddings/{id}``."""

    id: str
    text: str
    embedding: list[float]
    created_at: datetime
    metadata: dict[str, str] = Field(default_factory=dict)


class DeleteAllResponse(_CamelModel):
    deleted_count: int


# ---------------------------------------------------------------------------
# Bulk create
# ---------------------------------------------------------------------------


class BulkItem(_CamelModel):
    text: str = ""
    metadata: dict[str, str] | None = None


class BulkCreateRequest(_CamelModel):
    """Many creates in one call; each item succeeds or fails on its own."""

    items: list[BulkItem] = Field(default_factory=list)
    max_concurrency: int | None = Field(
        default=None,
        ge=1,
        le=64,
        description="Upper bound on in-flight creates; server default when omitted.",
    )


class BulkItemResult(_CamelModel):
    position: int
    id: str | None = None
    error: str | None = None
    error_type: str | None = None


class BulkCreateResponse(_CamelModel):
    succeeded: int
    failed: int
    results: list[BulkItemResult]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchRequest(_CamelModel):
    """Similarity search query.

    ``topK`` falls back to ``search.default_top_k`` (5) when omitted; a
    negative value is rejected with a 400.
    """

    query: str = ""
    top_k: int | None = None


class SearchResultResponse(_CamelModel):
    id: str
    text: str
    score: float
    metadata: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Health / errors
# ---------------------------------------------------------------------------


class HealthResponse(_CamelModel):
    """Application health check response."""

    status: str
    version: str
    embedding_provider: str
    vector_store: str
    index_name: str
    document_count: int


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    provider: str | None = None

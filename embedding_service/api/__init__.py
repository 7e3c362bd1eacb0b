"""Embedding service API layer: routes, schemas, and middleware."""

from embedding_service.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from embedding_service.api.routes import router
from embedding_service.api.schemas import (
    BulkCreateRequest,
    BulkCreateResponse,
    CreateEmbeddingRequest,
    CreateEmbeddingResponse,
    DeleteAllResponse,
    EmbeddingDocumentResponse,
    ErrorResponse,
    HealthResponse,
    SearchRequest,
    SearchResultResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "BulkCreateRequest",
    "BulkCreateResponse",
    "CreateEmbeddingRequest",
    "CreateEmbeddingResponse",
    "DeleteAllResponse",
    "EmbeddingDocumentResponse",
    "ErrorResponse",
    "HealthResponse",
    "SearchRequest",
    "SearchResultResponse",
]

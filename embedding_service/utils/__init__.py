"""Utility modules for the embedding service.

- **errors** -- Exception hierarchy rooted at EmbeddingServiceError; each
  class carries the HTTP status it maps to.
- **concurrency** -- Semaphore-throttled fan-out for bulk ingestion and
  client-disconnect cancellation for request handlers.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from embedding_service.utils.concurrency import cancel_on_disconnect, throttled_gather
from embedding_service.utils.errors import (
    ConfigurationError,
    EmbeddingProviderError,
    EmbeddingServiceError,
    EmptyResultError,
    IndexWriteFailedError,
    InvalidArgumentError,
    NotFoundError,
    ProviderUnavailableError,
    RequestCancelledError,
    SearchFailedError,
    VectorIndexError,
)
from embedding_service.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "EmbeddingProviderError",
    "EmbeddingServiceError",
    "EmptyResultError",
    "IndexWriteFailedError",
    "InvalidArgumentError",
    "NotFoundError",
    "ProviderUnavailableError",
    "RequestCancelledError",
    "SearchFailedError",
    "VectorIndexError",
    "cancel_on_disconnect",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]

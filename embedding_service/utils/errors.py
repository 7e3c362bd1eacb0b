"""Custom exception hierarchy for the embedding service.

All application exceptions inherit from :class:`EmbeddingServiceError`, which
carries an optional ``provider_name`` so error handlers can identify which
external dependency (e.g. "ollama_embedding", "chromadb") caused the failure.

Each class declares the HTTP ``status_code`` it maps to, so the API layer
can translate any failure without a per-route ``try``/``except``:

    EmbeddingServiceError      (base -- 500)
    +-- InvalidArgumentError   (empty/whitespace text or query -- 400)
    +-- NotFoundError          (no document with the requested id -- 404)
    +-- RequestCancelledError  (client went away mid-request -- 499)
    +-- ConfigurationError     (startup / schema mismatch -- 500)
    +-- EmbeddingProviderError (embedding generation failed)
    |   +-- ProviderUnavailableError  (endpoint down, timeout, non-2xx -- 503)
    |   +-- EmptyResultError          (success but zero vectors -- 502)
    +-- VectorIndexError       (backing store rejected an operation)
        +-- IndexWriteFailedError     (insert / delete rejected -- 502)
        +-- SearchFailedError         (k-NN search or lookup rejected -- 502)

Callers distinguish "bad input" (4xx) from "dependency failure" (5xx) by
the class alone.
"""


class EmbeddingServiceError(Exception):
    """Base exception for all embedding-service errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[chromadb] Upsert rejected``.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class InvalidArgumentError(EmbeddingServiceError):
    """Raised when a request argument is unusable (e.g. whitespace-only text)."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid argument",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(EmbeddingServiceError):
    """Raised when no document exists for the requested id."""

    status_code = 404

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RequestCancelledError(EmbeddingServiceError):
    """Raised when the client disconnects before the operation completes."""

    # Non-standard status popularised by nginx for "client closed request".
    status_code = 499

    def __init__(
        self,
        message: str = "Client closed the request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(EmbeddingServiceError):
    """Raised when configuration is invalid or the index schema disagrees with it."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding provider errors
# ---------------------------------------------------------------------------

class EmbeddingProviderError(EmbeddingServiceError):
    """Raised when embedding generation fails."""

    status_code = 502

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(EmbeddingProviderError):
    """Raised when the model endpoint is unreachable or answers with a non-2xx status.

    Not retried by the core; bulk tooling may choose to retry.
    """

    status_code = 503

    def __init__(
        self,
        message: str = "Embedding provider is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyResultError(EmbeddingProviderError):
    """Raised when the provider responds successfully but yields no vectors."""

    def __init__(
        self,
        message: str = "Embedding provider returned no vectors",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Vector index errors
# ---------------------------------------------------------------------------

class VectorIndexError(EmbeddingServiceError):
    """Raised when the backing vector index rejects an operation."""

    status_code = 502

    def __init__(
        self,
        message: str = "Vector index operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexWriteFailedError(VectorIndexError):
    """Raised when an insert or delete is rejected (schema mismatch, store down)."""

    def __init__(
        self,
        message: str = "Vector index write failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SearchFailedError(VectorIndexError):
    """Raised when a similarity search or id lookup is rejected."""

    def __init__(
        self,
        message: str = "Vector index search failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

"""Ollama embedding provider adapter (local/free).

Talks to Ollama's native ``POST /api/embed`` endpoint through an injected
``httpx.AsyncClient`` to implement :class:`IEmbeddingProvider` using
``nomic-embed-text`` (768 dimensions) by default.  Runs locally with no API
key required.

Setup: install Ollama (https://ollama.ai), ``ollama pull nomic-embed-text``,
then set OLLAMA_BASE_URL=http://localhost:11434.
"""

from __future__ import annotations

import httpx
import structlog
from pydantic import ValidationError

from embedding_service.config.settings import Settings
from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
from embedding_service.models.ollama import (
    OllamaEmbedRequest,
    OllamaEmbedResponse,
    OllamaModelsResponse,
)
from embedding_service.providers.embedding.vector_checks import check_vector_shapes
from embedding_service.utils.errors import EmptyResultError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_EMBED_PATH = "/api/embed"
_TAGS_PATH = "/api/tags"


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a model served by Ollama.

    Parameters
    ----------
    settings:
        Supplies the base URL, model name, vector dimension and the embed
        timeout.  Embedding long inputs on CPU-only hosts can take minutes,
        so the embed call uses ``embedding_timeout_seconds`` rather than the
        client's default timeout.
    http_client:
        Shared ``httpx.AsyncClient``; owned and closed by the application
        lifespan.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http_client
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.embedding_model
        self._dimension = settings.embedding_dimension
        self._timeout = settings.embedding_timeout_seconds

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts in one call."""
        if not texts:
            return []

        payload = OllamaEmbedRequest(
            model=self._model,
            input=texts[0] if len(texts) == 1 else texts,
        )
        try:
            response = await self._http.post(
                f"{self._base_url}{_EMBED_PATH}",
                json=payload.model_dump(),
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = OllamaEmbedResponse.model_validate(response.json())
        except httpx.TimeoutException as exc:
            raise ProviderUnavailableError(
                message=f"Timed out after {self._timeout:.0f}s waiting for embeddings",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailableError(
                message=(
                    f"HTTP {exc.response.status_code} from {_EMBED_PATH}: "
                    f"{exc.response.text[:200]}"
                ),
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"HTTP error calling {_EMBED_PATH}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except (ValidationError, ValueError) as exc:
            raise ProviderUnavailableError(
                message=f"Malformed response from {_EMBED_PATH}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if len(body.embeddings) < len(texts):
            raise EmptyResultError(
                message=(
                    f"Model '{self._model}' returned {len(body.embeddings)} "
                    f"vector(s) for {len(texts)} input(s)"
                ),
                provider_name=self.get_provider_name(),
            )
        vectors = body.embeddings[: len(texts)]
        check_vector_shapes(vectors, model=self._model, provider_name=self.get_provider_name())

        logger.info(
            "ollama_embedding_batch",
            model=self._model,
            batch_size=len(texts),
            prompt_tokens=body.prompt_eval_count,
            total_ms=body.total_duration // 1_000_000,
        )
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    async def ensure_model_available(self) -> bool:
        """Return ``True`` if ``GET /api/tags`` lists the configured model.

        Ollama reports untagged pulls as ``name:latest``, so both forms match.
        Never raises; failures are logged as warnings.
        """
        try:
            response = await self._http.get(f"{self._base_url}{_TAGS_PATH}")
            response.raise_for_status()
            tags = OllamaModelsResponse.model_validate(response.json())
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            logger.warning(
                "ollama_model_check_failed",
                model=self._model,
                base_url=self._base_url,
                error=str(exc),
            )
            return False

        wanted = {self._model, f"{self._model}:latest"}
        available = {m.name for m in tags.models} | {m.model for m in tags.models}
        if wanted & available:
            logger.info("ollama_model_available", model=self._model)
            return True

        logger.warning(
            "ollama_model_missing",
            model=self._model,
            hint=f"run 'ollama pull {self._model}'",
            available=sorted(name for name in available if name),
        )
        return False

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "ollama_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if a base URL and model name are configured."""
        return bool(self._base_url and self._model)

"""Embeddings through the ``openai`` SDK.

Used when ``EMBEDDING_PROVIDER=openai``.  Works against real OpenAI and
against OpenAI-compatible servers (TogetherAI, Fireworks, Ollama's own
``/v1`` endpoint) reached through a custom ``base_url``.
"""

from __future__ import annotations

import openai
import structlog

from embedding_service.config.settings import Settings
from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
from embedding_service.providers.embedding.vector_checks import check_vector_shapes
from embedding_service.utils.errors import EmptyResultError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Model families whose output length can be shortened server-side with the
# ``dimensions`` request parameter.
_MATRYOSHKA_PREFIXES = ("text-embedding-3-",)


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """``POST /v1/embeddings`` client producing vectors for the store.

    The vector length is ``EMBEDDING_DIMENSION``.  For ``text-embedding-3-*``
    models it is requested explicitly, so e.g. ``text-embedding-3-small``
    can feed an existing 768-dim index; every other model must natively
    produce that many dimensions.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.embedding_model
        self._dimension = settings.embedding_dimension
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": settings.embedding_timeout_seconds,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

        self._request_extras: dict = {}
        if self._model.startswith(_MATRYOSHKA_PREFIXES):
            self._request_extras["dimensions"] = self._dimension

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in slices of at most 2048 inputs per API call."""
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
            vectors.extend(await self._embed_batch(texts[start : start + _OPENAI_BATCH_LIMIT]))

        if len(vectors) < len(texts):
            raise EmptyResultError(
                message=(
                    f"Model '{self._model}' returned {len(vectors)} "
                    f"vector(s) for {len(texts)} input(s)"
                ),
                provider_name=self.get_provider_name(),
            )
        check_vector_shapes(vectors, model=self._model, provider_name=self.get_provider_name())
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        """Embed one text; see :meth:`embed` for failure modes."""
        result = await self.embed([text])
        return result[0]

    async def ensure_model_available(self) -> bool:
        try:
            await self._client.models.retrieve(self._model)
        except openai.OpenAIError as exc:
            logger.warning(
                "openai_model_check_failed",
                model=self._model,
                provider=self._provider_label,
                error=str(exc),
            )
            return False
        logger.info("openai_model_available", model=self._model, provider=self._provider_label)
        return True

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Configured means an API key is set; no network call is made."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(
                input=batch,
                model=self._model,
                **self._request_extras,
            )
        except openai.OpenAIError as exc:
            raise ProviderUnavailableError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        # The API reports each vector's input position; don't rely on order.
        data = sorted(response.data, key=lambda item: item.index)
        logger.info(
            "openai_embedding_batch",
            model=self._model,
            provider=self._provider_label,
            batch_size=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [list(item.embedding) for item in data]

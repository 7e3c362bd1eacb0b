"""Embedding service FastAPI application entry point.

Wires together providers, the embedding store, services and routes via
dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml`` and configures structured logging.

Start-up sequence (run by the lifespan, also reused by the CLI):

    1. build_components   -- shared httpx client, embedding provider, ChromaDB
    2. start_components   -- advisory model check, explicit index
                             initialisation, store + services
    3. close_components   -- close the shared httpx client on shutdown
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from embedding_service import __version__
from embedding_service.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from embedding_service.api.routes import router as api_router
from embedding_service.config.loader import load_config
from embedding_service.config.settings import Settings
from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
from embedding_service.interfaces.vector_store_provider import IVectorStoreProvider
from embedding_service.models.vector import IndexSchema, SimilarityMetric
from embedding_service.providers.embedding.ollama_embedding_provider import (
    OllamaEmbeddingProvider,
)
from embedding_service.providers.embedding.openai_embedding_provider import (
    OpenAIEmbeddingProvider,
)
from embedding_service.providers.vector_store.chromadb_provider import ChromaDBProvider
from embedding_service.services.embedding_store import EmbeddingStore, initialize_index
from embedding_service.services.ingestion_service import IngestionService
from embedding_service.services.similarity_search_service import SimilaritySearchService
from embedding_service.utils.errors import ConfigurationError
from embedding_service.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(
    app_settings: Settings,
    http_client: httpx.AsyncClient,
) -> IEmbeddingProvider:
    """Return the embedding provider named by ``EMBEDDING_PROVIDER``."""
    if app_settings.embedding_provider == "ollama":
        return OllamaEmbeddingProvider(settings=app_settings, http_client=http_client)
    if app_settings.embedding_provider == "openai":
        provider = OpenAIEmbeddingProvider(settings=app_settings)
        if not provider.is_available():
            raise ConfigurationError(
                message="EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY",
                provider_name=provider.get_provider_name(),
            )
        return provider
    raise ConfigurationError(
        message=(
            f"Unknown EMBEDDING_PROVIDER '{app_settings.embedding_provider}' "
            "(expected 'ollama' or 'openai')"
        ),
    )


def _build_vector_store(app_settings: Settings) -> IVectorStoreProvider:
    if app_settings.chromadb_mode not in ("persistent", "http"):
        raise ConfigurationError(
            message=(
                f"Unknown CHROMADB_MODE '{app_settings.chromadb_mode}' "
                "(expected 'persistent' or 'http')"
            ),
        )
    return ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        mode=app_settings.chromadb_mode,
        host=app_settings.chromadb_host,
        port=app_settings.chromadb_port,
        ssl=app_settings.chromadb_ssl,
    )


def _index_schema(app_settings: Settings, embedding_provider: IEmbeddingProvider) -> IndexSchema:
    try:
        metric = SimilarityMetric(app_settings.similarity_metric)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in SimilarityMetric)
        raise ConfigurationError(
            message=f"Unknown SIMILARITY_METRIC '{app_settings.similarity_metric}' ({allowed})",
        ) from exc
    return IndexSchema(
        name=app_settings.vector_index_name,
        dimension=embedding_provider.get_dimension(),
        metric=metric,
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct the shared HTTP client and the two external-service providers.

    Returns a flat dict of named components; :func:`start_components` adds
    the store and services once the index is known to exist.
    """
    vector_store = _build_vector_store(app_settings)
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)
    embedding_provider = _build_embedding_provider(app_settings, http_client)

    return {
        "http_client": http_client,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "settings": app_settings,
    }


async def start_components(
    components: dict[str, Any],
    app_config: dict[str, Any],
) -> dict[str, Any]:
    """Check the model, initialise the index, and build store and services.

    Raises
    ------
    ConfigurationError
        If the existing index disagrees with the configured dimension or
        metric.  Fatal: the service cannot start against such an index.
    """
    app_settings: Settings = components["settings"]
    embedding_provider: IEmbeddingProvider = components["embedding_provider"]
    vector_store: IVectorStoreProvider = components["vector_store"]

    # Advisory: a missing model is reported again on the first embed call.
    await embedding_provider.ensure_model_available()

    index_state = await initialize_index(
        vector_store, _index_schema(app_settings, embedding_provider)
    )
    store = EmbeddingStore(
        vector_store,
        index_state,
        min_candidates=int(app_config["search"]["min_candidates"]),
    )
    components.update(
        {
            "index_state": index_state,
            "embedding_store": store,
            "ingestion_service": IngestionService(
                embedding_provider,
                store,
                max_concurrency=int(app_config["bulk"]["max_concurrency"]),
            ),
            "search_service": SimilaritySearchService(
                embedding_provider,
                store,
                default_top_k=int(app_config["search"]["default_top_k"]),
            ),
        }
    )
    return components


async def close_components(components: dict[str, Any]) -> None:
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(app_settings: Settings, app_config: dict[str, Any]):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Initialise all providers and services on startup, clean up on shutdown."""
        components = build_components(app_settings)
        try:
            await start_components(components, app_config)
        except ConfigurationError as exc:
            _logger.error("app_startup_failed", error=str(exc))
            await close_components(components)
            raise

        for key, value in components.items():
            setattr(application.state, key, value)

        _logger.info(
            "app_startup",
            version=__version__,
            environment=app_settings.app_env,
            embedding_provider=components["embedding_provider"].get_provider_name(),
            vector_store=components["vector_store"].get_provider_name(),
            index=components["index_state"].index_name,
            dimension=components["index_state"].dimension,
        )

        yield

        await close_components(components)
        _logger.info("app_shutdown", message="HTTP client closed")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    app_config: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings
    app_config = app_config or config

    application = FastAPI(
        title="Embedding Service API",
        version=__version__,
        description=(
            "Convert text into vector embeddings, store them in a vector index, "
            "and answer nearest-neighbour similarity queries."
        ),
        lifespan=_make_lifespan(app_settings, app_config),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=app_config["cors"]["allowed_origins"])

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "embedding_service.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )

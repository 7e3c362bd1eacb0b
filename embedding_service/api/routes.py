"""FastAPI routes for the embedding service.

Endpoint                     Method  Description
------------------------------------------------------------------------
/embeddings                  POST    Embed text and store it
/embeddings/bulk             POST    Embed and store many texts at once
/embeddings/{id}             GET     Fetch a stored document
/embeddings/{id}             DELETE  Delete one document (204 / 404)
/embeddings                  DELETE  Delete every document
/search                      POST    Similarity search
/health                      GET     Health check + document count

Service dependencies are resolved from ``app.state`` (populated at start-up
by the lifespan in ``main.py``) via ``Depends`` using the ``Annotated``
pattern.  Every handler runs its service call under
:func:`cancel_on_disconnect`, so a client that hangs up mid-request stops
the outbound embedding / index work instead of leaving it running.

Errors are not caught here: services raise ``EmbeddingServiceError``
subclasses and ``ErrorHandlingMiddleware`` turns them into JSON responses.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, Response

from embedding_service import __version__
from embedding_service.api.schemas import (
    BulkCreateRequest,
    BulkCreateResponse,
    BulkItemResult,
    CreateEmbeddingRequest,
    CreateEmbeddingResponse,
    DeleteAllResponse,
    EmbeddingDocumentResponse,
    ErrorResponse,
    HealthResponse,
    SearchRequest,
    SearchResultResponse,
)
from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
from embedding_service.services.embedding_store import EmbeddingStore
from embedding_service.services.ingestion_service import IngestionService
from embedding_service.services.similarity_search_service import SimilaritySearchService
from embedding_service.utils.concurrency import cancel_on_disconnect
from embedding_service.utils.errors import InvalidArgumentError, NotFoundError
from embedding_service.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_search_service(request: Request) -> SimilaritySearchService:
    return request.app.state.search_service


def _get_store(request: Request) -> EmbeddingStore:
    return request.app.state.embedding_store


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
SearchDep = Annotated[SimilaritySearchService, Depends(_get_search_service)]
StoreDep = Annotated[EmbeddingStore, Depends(_get_store)]


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


@router.post(
    "/embeddings",
    response_model=CreateEmbeddingResponse,
    responses=_ERROR_RESPONSES,
)
async def create_embedding(
    body: CreateEmbeddingRequest,
    request: Request,
    ingestion: IngestionDep,
) -> CreateEmbeddingResponse:
    """Embed ``text`` and store it; returns the new id and its vector."""
    created = await cancel_on_disconnect(
        request, ingestion.create(body.text, body.metadata)
    )
    return CreateEmbeddingResponse(id=created.id, embedding=created.vector, text=created.text)


@router.post(
    "/embeddings/bulk",
    response_model=BulkCreateResponse,
    responses={400: {"model": ErrorResponse}},
)
async def bulk_create_embeddings(
    body: BulkCreateRequest,
    request: Request,
    ingestion: IngestionDep,
) -> BulkCreateResponse:
    """Create many documents; per-item failures are reported, not raised."""
    if not body.items:
        raise InvalidArgumentError(message="items must contain at least one entry")

    outcomes = await cancel_on_disconnect(
        request,
        ingestion.create_many(
            [(item.text, item.metadata) for item in body.items],
            max_concurrency=body.max_concurrency,
        ),
    )
    succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
    return BulkCreateResponse(
        succeeded=succeeded,
        failed=len(outcomes) - succeeded,
        results=[
            BulkItemResult(
                position=outcome.position,
                id=outcome.id,
                error=outcome.error,
                error_type=outcome.error_type,
            )
            for outcome in outcomes
        ],
    )


@router.get(
    "/embeddings/{document_id}",
    response_model=EmbeddingDocumentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_embedding(
    document_id: str,
    request: Request,
    ingestion: IngestionDep,
) -> EmbeddingDocumentResponse:
    document = await cancel_on_disconnect(request, ingestion.get(document_id))
    return EmbeddingDocumentResponse(
        id=document.id,
        text=document.text,
        embedding=document.vector,
        created_at=document.created_at,
        metadata=document.metadata,
    )


@router.delete(
    "/embeddings/{document_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
)
async def delete_embedding(
    document_id: str,
    request: Request,
    ingestion: IngestionDep,
) -> Response:
    deleted = await cancel_on_disconnect(request, ingestion.delete(document_id))
    if not deleted:
        raise NotFoundError(message=f"No embedding with id '{document_id}'")
    return Response(status_code=204)


@router.delete("/embeddings", response_model=DeleteAllResponse)
async def delete_all_embeddings(
    request: Request,
    ingestion: IngestionDep,
) -> DeleteAllResponse:
    """Delete every stored document.

    Documents created while the purge is running may survive it.
    """
    deleted = await cancel_on_disconnect(request, ingestion.delete_all())
    return DeleteAllResponse(deleted_count=deleted)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=list[SearchResultResponse],
    responses=_ERROR_RESPONSES,
)
async def search(
    body: SearchRequest,
    request: Request,
    search_service: SearchDep,
) -> list[SearchResultResponse]:
    """Return up to ``topK`` stored texts most similar to ``query``."""
    results = await cancel_on_disconnect(
        request, search_service.search(body.query, body.top_k)
    )
    return [
        SearchResultResponse(
            id=result.id,
            text=result.text,
            score=result.score,
            metadata=result.metadata,
        )
        for result in results
    ]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, store: StoreDep) -> HealthResponse:
    """Return service health, provider names and the document count.

    ``healthy`` when the index answers a count, ``degraded`` otherwise.
    """
    embedding_provider: IEmbeddingProvider = request.app.state.embedding_provider
    vector_store = request.app.state.vector_store

    try:
        document_count = await store.count()
        status = "healthy"
    except Exception as exc:  # noqa: BLE001
        _logger.warning("health_count_failed", error=str(exc))
        document_count = 0
        status = "degraded"

    return HealthResponse(
        status=status,
        version=__version__,
        embedding_provider=embedding_provider.get_provider_name(),
        vector_store=vector_store.get_provider_name(),
        index_name=store.index_name,
        document_count=document_count,
    )

"""Orchestrator for the embedding lifecycle: create, read, delete, bulk create.

Pipeline for a create: **validate -> embed -> index**.

The :class:`IngestionService` coordinates two collaborators (embedding
provider and embedding store) without either knowing about the other.
There is no update operation; changing a document's text means delete and
recreate, because the vector is derived from the text.

Per-document lifecycle::

    absent --create--> indexed --delete / delete_all--> absent

If the index write fails after a successful embed the document does not
exist and the caller retries from ``create``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import structlog

from embedding_service.models.embedding import (
    BulkItemOutcome,
    CreatedEmbedding,
    EmbeddingDocument,
)
from embedding_service.utils.concurrency import throttled_gather
from embedding_service.utils.errors import (
    EmbeddingServiceError,
    InvalidArgumentError,
    NotFoundError,
)

if TYPE_CHECKING:
    from embedding_service.interfaces.embedding_provider import IEmbeddingProvider
    from embedding_service.services.embedding_store import EmbeddingStore

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_CONCURRENCY = 8


class IngestionService:
    """Validates requests and composes the embedding provider with the store.

    Parameters
    ----------
    embedding_provider:
        Generates the vector for each new document.
    store:
        Persists, fetches and deletes documents.
    max_concurrency:
        Default bound on in-flight creates for :meth:`create_many`.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        store: EmbeddingStore,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._store = store
        self._max_concurrency = max(1, max_concurrency)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create(
        self,
        text: str,
        metadata: Mapping[str, str] | None = None,
    ) -> CreatedEmbedding:
        """Embed *text*, store it, and return the new id with its vector.

        Raises
        ------
        InvalidArgumentError
            If *text* is empty or whitespace (before any outbound call).
        ProviderUnavailableError, EmptyResultError
            If embedding fails; nothing is written.
        IndexWriteFailedError
            If the store rejects the write; the document does not exist.
        """
        if not text or not text.strip():
            raise InvalidArgumentError(message="Text must not be empty")

        vector = await self._embedding_provider.embed_single(text)
        document = EmbeddingDocument(
            text=text,
            vector=vector,
            metadata=dict(metadata or {}),
        )
        document_id = await self._store.index(document)

        logger.info(
            "embedding_created",
            id=document_id,
            text_length=len(text),
            dimension=len(vector),
        )
        return CreatedEmbedding(id=document_id, vector=document.vector, text=document.text)

    async def get(self, document_id: str) -> EmbeddingDocument:
        """Return the stored document or raise :class:`NotFoundError`."""
        document = await self._store.get(document_id)
        if document is None:
            raise NotFoundError(message=f"No embedding with id '{document_id}'")
        return document

    async def delete(self, document_id: str) -> bool:
        deleted = await self._store.delete(document_id)
        logger.info("embedding_deleted", id=document_id, existed=deleted)
        return deleted

    async def delete_all(self) -> int:
        return await self._store.delete_all()

    async def create_many(
        self,
        items: Sequence[tuple[str, Mapping[str, str] | None]],
        max_concurrency: int | None = None,
    ) -> list[BulkItemOutcome]:
        """Create many documents with at most *max_concurrency* in flight.

        Each item is an independent :meth:`create`; one item's failure never
        affects another.  Outcomes are returned in submission order with the
        item's position, so callers can resubmit only the failures.

        Only :class:`EmbeddingServiceError` failures are recorded per item;
        anything else is a bug and is re-raised once every item settles.
        """
        limit = max(1, max_concurrency or self._max_concurrency)
        semaphore = asyncio.Semaphore(limit)
        start = time.monotonic()

        results = await throttled_gather(
            [self.create(text, metadata) for text, metadata in items],
            semaphore,
        )

        outcomes: list[BulkItemOutcome] = []
        unexpected: BaseException | None = None
        for position, result in enumerate(results):
            if isinstance(result, CreatedEmbedding):
                outcomes.append(BulkItemOutcome(position=position, id=result.id))
            elif isinstance(result, EmbeddingServiceError):
                outcomes.append(
                    BulkItemOutcome(
                        position=position,
                        error=str(result),
                        error_type=type(result).__name__,
                    )
                )
            elif unexpected is None:
                unexpected = result

        if unexpected is not None:
            raise unexpected

        succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
        logger.info(
            "bulk_create_complete",
            total=len(outcomes),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            max_concurrency=limit,
            elapsed_s=round(time.monotonic() - start, 2),
        )
        return outcomes

"""Embedding store: document schema, index lifecycle and k-NN retrieval.

The store is the only component that knows how an
:class:`~embedding_service.models.embedding.EmbeddingDocument` is laid out
inside the vector index.  Each document becomes one
:class:`~embedding_service.models.vector.VectorRecord` whose string fields are:

    created_at        ISO-8601 UTC timestamp
    metadata.<key>    one field per caller-supplied metadata entry

Index initialisation is an explicit step.  :func:`initialize_index` runs
once during application start-up and its :class:`IndexState` is passed to
the store's constructor; the check-then-create is idempotent, so running it
from several processes at once is safe.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from embedding_service.models.embedding import EmbeddingDocument, IndexState, ScoredDocument
from embedding_service.models.vector import IndexSchema, VectorRecord
from embedding_service.utils.errors import ConfigurationError, IndexWriteFailedError

if TYPE_CHECKING:
    from embedding_service.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

_CREATED_AT_FIELD = "created_at"
_METADATA_PREFIX = "metadata."

DEFAULT_MIN_CANDIDATES = 100


async def initialize_index(
    vector_index: IVectorStoreProvider,
    schema: IndexSchema,
) -> IndexState:
    """Ensure the index described by *schema* exists and agrees with it.

    Parameters
    ----------
    vector_index:
        Backing vector index provider.
    schema:
        Required name, dimension and metric.  ``dimension`` must be set.

    Returns
    -------
    IndexState
        ``created=True`` only when this call created the index.

    Raises
    ------
    ConfigurationError
        If an existing index records a different dimension or metric.
    """
    if schema.dimension is None:
        raise ConfigurationError(
            message=f"No vector dimension configured for index '{schema.name}'",
        )

    existing = await vector_index.get_index_schema(schema.name)
    created = False
    if existing is None:
        created = await vector_index.create_index(schema)
        if not created:
            # Lost a creation race; read back what the winner created.
            existing = await vector_index.get_index_schema(schema.name)

    if existing is not None:
        _verify_schema(existing, schema, vector_index.get_provider_name())

    state = IndexState(
        index_name=schema.name,
        dimension=schema.dimension,
        metric=schema.metric,
        created=created,
    )
    logger.info(
        "index_created" if created else "index_exists",
        index=state.index_name,
        dimension=state.dimension,
        metric=state.metric.value,
        provider=vector_index.get_provider_name(),
    )
    return state


def _verify_schema(existing: IndexSchema, wanted: IndexSchema, provider_name: str) -> None:
    if existing.dimension is not None and existing.dimension != wanted.dimension:
        raise ConfigurationError(
            message=(
                f"Index '{wanted.name}' stores {existing.dimension}-dim vectors but the "
                f"embedding model produces {wanted.dimension}-dim vectors. "
                f"Use a different VECTOR_INDEX_NAME or purge and recreate the index."
            ),
            provider_name=provider_name,
        )
    if existing.metric != wanted.metric:
        raise ConfigurationError(
            message=(
                f"Index '{wanted.name}' uses the '{existing.metric.value}' metric, "
                f"expected '{wanted.metric.value}'"
            ),
            provider_name=provider_name,
        )


class EmbeddingStore:
    """Translates domain operations into vector-index calls.

    Parameters
    ----------
    vector_index:
        Backing vector index provider.
    index_state:
        Result of :func:`initialize_index`.  When omitted the store runs
        the (idempotent) initialisation itself before the first call that
        needs it, using *schema*.
    schema:
        Index schema; required when *index_state* is omitted.
    min_candidates:
        Lower bound on the k-NN candidate pool.
    """

    def __init__(
        self,
        vector_index: IVectorStoreProvider,
        index_state: IndexState | None = None,
        *,
        schema: IndexSchema | None = None,
        min_candidates: int = DEFAULT_MIN_CANDIDATES,
    ) -> None:
        if index_state is None and schema is None:
            raise ConfigurationError(
                message="EmbeddingStore needs either an IndexState or an IndexSchema",
            )
        self._vector_index = vector_index
        self._state = index_state
        self._schema = schema or IndexSchema(
            name=index_state.index_name,
            dimension=index_state.dimension,
            metric=index_state.metric,
        )
        self._min_candidates = max(1, min_candidates)

    @property
    def index_name(self) -> str:
        return self._schema.name

    @property
    def dimension(self) -> int | None:
        return self._schema.dimension

    @property
    def index_state(self) -> IndexState | None:
        return self._state

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    async def initialize_index(self) -> IndexState:
        """Run the idempotent existence check / create and remember the result."""
        self._state = await initialize_index(self._vector_index, self._schema)
        return self._state

    async def _ensure_ready(self) -> IndexState:
        if self._state is None:
            return await self.initialize_index()
        return self._state

    # ------------------------------------------------------------------
    # Document operations
    # ------------------------------------------------------------------

    async def index(self, document: EmbeddingDocument) -> str:
        """Write *document* to the index and return its id.

        Raises
        ------
        IndexWriteFailedError
            If the vector length disagrees with the index dimension or the
            backing store rejects the write.
        """
        state = await self._ensure_ready()
        if len(document.vector) != state.dimension:
            raise IndexWriteFailedError(
                message=(
                    f"Vector has {len(document.vector)} dimensions, "
                    f"index '{state.index_name}' expects {state.dimension}"
                ),
                provider_name=self._vector_index.get_provider_name(),
            )

        await self._vector_index.upsert(state.index_name, self._to_record(document))
        logger.info(
            "document_indexed",
            index=state.index_name,
            id=document.id,
            text_length=len(document.text),
            metadata_keys=len(document.metadata),
        )
        return document.id

    async def get(self, document_id: str) -> EmbeddingDocument | None:
        record = await self._vector_index.get(self.index_name, document_id)
        if record is None:
            return None
        return self._from_record(record)

    async def delete(self, document_id: str) -> bool:
        """Remove one document; ``False`` means it was not there."""
        return await self._vector_index.delete(self.index_name, document_id)

    async def delete_all(self) -> int:
        """Remove every document and return how many were removed."""
        deleted = await self._vector_index.delete_all(self.index_name)
        logger.info("documents_purged", index=self.index_name, deleted_count=deleted)
        return deleted

    async def search_by_similarity(
        self,
        query_vector: list[float],
        top_k: int,
    ) -> list[ScoredDocument]:
        """Return up to *top_k* nearest documents, most similar first.

        The index examines ``max(min_candidates, top_k)`` candidates before
        trimming, which keeps recall stable for small *top_k* on HNSW.
        """
        if top_k <= 0:
            return []

        num_candidates = max(self._min_candidates, top_k)
        hits = await self._vector_index.knn_search(
            self.index_name,
            query_vector,
            k=top_k,
            num_candidates=num_candidates,
        )
        return [
            ScoredDocument(document=self._from_record(hit.record), score=hit.score)
            for hit in hits[:top_k]
        ]

    async def count(self) -> int:
        return await self._vector_index.count(self.index_name)

    # ------------------------------------------------------------------
    # Schema mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_record(document: EmbeddingDocument) -> VectorRecord:
        fields = {_CREATED_AT_FIELD: document.created_at.isoformat()}
        for key, value in document.metadata.items():
            fields[f"{_METADATA_PREFIX}{key}"] = value
        return VectorRecord(
            id=document.id,
            vector=document.vector,
            document=document.text,
            fields=fields,
        )

    @staticmethod
    def _from_record(record: VectorRecord) -> EmbeddingDocument:
        metadata = {
            key[len(_METADATA_PREFIX):]: value
            for key, value in record.fields.items()
            if key.startswith(_METADATA_PREFIX)
        }
        kwargs: dict = {
            "id": record.id,
            "text": record.document,
            "vector": record.vector,
            "metadata": metadata,
        }
        created_at = record.fields.get(_CREATED_AT_FIELD)
        if created_at:
            kwargs["created_at"] = datetime.fromisoformat(created_at)
        return EmbeddingDocument(**kwargs)

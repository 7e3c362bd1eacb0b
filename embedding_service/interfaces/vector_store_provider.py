"""Abstract base class for vector-index providers.

Defines the contract the embedding store needs from an external document
store: existence check, create-index-with-schema, upsert by id, get by id,
delete by id, delete all, and approximate k-NN search by vector.
Implementations may wrap ChromaDB (the default), Elasticsearch, Qdrant, or
any other store with the same capabilities.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from embedding_service.models.vector import IndexSchema, VectorHit, VectorRecord


# Concrete implementation: ChromaDBProvider (embedding_service/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-index services used by the embedding store.

    All methods are async so network-backed stores never block the event
    loop.  Every method takes the index name explicitly; the provider is a
    thin adapter and owns no domain schema.
    """

    @abstractmethod
    async def get_index_schema(self, index_name: str) -> IndexSchema | None:
        """Return the schema of *index_name*, or ``None`` if it does not exist.

        ``IndexSchema.dimension`` is ``None`` when the index exists but
        records no dimension and holds no vectors to infer it from.
        """

    @abstractmethod
    async def create_index(self, schema: IndexSchema) -> bool:
        """Create the index described by *schema*.

        Returns
        -------
        bool
            ``True`` if this call created the index, ``False`` if it already
            existed (including losing a creation race to another process).
            "Already exists" is never an error.

        Raises
        ------
        embedding_service.utils.errors.IndexWriteFailedError
            If the store refuses to create the index.
        """

    @abstractmethod
    async def upsert(self, index_name: str, record: VectorRecord) -> None:
        """Insert or replace *record* keyed by ``record.id``.

        Raises
        ------
        embedding_service.utils.errors.IndexWriteFailedError
            If the store rejects the write.
        """

    @abstractmethod
    async def get(self, index_name: str, record_id: str) -> VectorRecord | None:
        """Return the record with *record_id*, or ``None`` if absent."""

    @abstractmethod
    async def delete(self, index_name: str, record_id: str) -> bool:
        """Delete one record; return ``True`` if it existed."""

    @abstractmethod
    async def delete_all(self, index_name: str) -> int:
        """Delete every record in the index and return how many were removed."""

    @abstractmethod
    async def knn_search(
        self,
        index_name: str,
        vector: list[float],
        k: int,
        num_candidates: int,
    ) -> list[VectorHit]:
        """Approximate k-nearest-neighbour search.

        Parameters
        ----------
        vector:
            Query vector; must have the index dimension.
        k:
            Maximum number of hits returned.
        num_candidates:
            Size of the candidate pool examined before trimming to *k*
            (at least *k*).  A larger pool improves recall on approximate
            indexes.

        Returns
        -------
        list[VectorHit]
            At most *k* hits ordered by descending score.

        Raises
        ------
        embedding_service.utils.errors.SearchFailedError
            If the store rejects the query.
        """

    @abstractmethod
    async def count(self, index_name: str) -> int:
        """Return the number of records in the index."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""

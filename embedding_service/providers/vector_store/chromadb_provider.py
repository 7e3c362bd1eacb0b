"""ChromaDB vector index provider adapter.

Wraps a ``chromadb`` client to implement :class:`IVectorStoreProvider`.
One ChromaDB collection backs one vector index; the collection metadata
records the HNSW distance function and the vector dimension so a restart
can verify them.  Runs fully local with ``PersistentClient`` or against a
Chroma server with ``HttpClient``.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# ChromaDB reads this before the client is built; the Settings flag below
# covers versions that ignore the env var.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog
from chromadb.utils.embedding_functions import register_embedding_function

from embedding_service.interfaces.vector_store_provider import IVectorStoreProvider
from embedding_service.models.vector import (
    IndexSchema,
    SimilarityMetric,
    VectorHit,
    VectorRecord,
)
from embedding_service.utils.errors import (
    IndexWriteFailedError,
    SearchFailedError,
    VectorIndexError,
)

logger = structlog.get_logger(logger_name=__name__)

_SPACE_KEY = "hnsw:space"
_DIMENSION_KEY = "dimension"
# Keeps each SQLite query under the bind-parameter ceiling on large indexes.
_PAGE_SIZE = 5000


@register_embedding_function
class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Vectors always arrive pre-computed from the embedding provider, so
    ChromaDB's built-in embedding is never invoked.  Without this, ChromaDB
    downloads its default ONNX model on collection creation.

    Registered by name so a collection persisted with this function can be
    reopened by a fresh process.
    """

    def __init__(self) -> None:
        pass

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Vectors are pre-computed; ChromaDB's built-in embedding should never be called."
        )

    @staticmethod
    def name() -> str:
        return "noop_precomputed"

    def get_config(self) -> dict[str, Any]:
        return {}

    @staticmethod
    def build_from_config(config: dict[str, Any]) -> _NoopEmbeddingFunction:
        return _NoopEmbeddingFunction()


class ChromaDBProvider(IVectorStoreProvider):
    """Vector index provider backed by ChromaDB.

    Every ChromaDB call is synchronous, so each public coroutine runs its
    work in a thread via :func:`asyncio.to_thread` and the event loop keeps
    serving other requests while the index is busy.

    Parameters
    ----------
    persist_directory:
        On-disk location used in ``"persistent"`` mode.
    mode:
        ``"persistent"`` (embedded, local disk) or ``"http"`` (Chroma server).
    host, port, ssl:
        Chroma server address, used in ``"http"`` mode only.
    client:
        Pre-built client; overrides every other parameter.  Used by tests.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        *,
        mode: str = "persistent",
        host: str = "localhost",
        port: int = 8000,
        ssl: bool = False,
        client: Any | None = None,
    ) -> None:
        self._mode = mode
        if client is not None:
            self._client = client
        elif mode == "http":
            self._client = chromadb.HttpClient(
                host=host,
                port=port,
                ssl=ssl,
                settings=chromadb.config.Settings(anonymized_telemetry=False),
            )
        else:
            self._client = chromadb.PersistentClient(
                path=persist_directory,
                settings=chromadb.config.Settings(anonymized_telemetry=False),
            )
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def get_index_schema(self, index_name: str) -> IndexSchema | None:
        try:
            return await asyncio.to_thread(self._get_index_schema_sync, index_name)
        except VectorIndexError:
            raise
        except Exception as exc:
            raise SearchFailedError(
                message=f"ChromaDB schema lookup for '{index_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def create_index(self, schema: IndexSchema) -> bool:
        try:
            created = await asyncio.to_thread(self._create_index_sync, schema)
        except VectorIndexError:
            raise
        except Exception as exc:
            raise IndexWriteFailedError(
                message=f"ChromaDB create_collection '{schema.name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "chromadb_create_index",
            index=schema.name,
            dimension=schema.dimension,
            metric=schema.metric.value,
            created=created,
        )
        return created

    async def upsert(self, index_name: str, record: VectorRecord) -> None:
        try:
            await asyncio.to_thread(self._upsert_sync, index_name, record)
        except Exception as exc:
            raise IndexWriteFailedError(
                message=f"ChromaDB upsert of '{record.id}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("chromadb_upsert", index=index_name, id=record.id)

    async def get(self, index_name: str, record_id: str) -> VectorRecord | None:
        try:
            return await asyncio.to_thread(self._get_sync, index_name, record_id)
        except Exception as exc:
            raise SearchFailedError(
                message=f"ChromaDB get of '{record_id}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete(self, index_name: str, record_id: str) -> bool:
        """Delete one record; ``False`` when the id was absent.

        Existence is checked before the delete, not atomically with it, so two
        concurrent deletes of one id can both report ``True``.
        """
        try:
            existed = await asyncio.to_thread(self._delete_sync, index_name, record_id)
        except Exception as exc:
            raise IndexWriteFailedError(
                message=f"ChromaDB delete of '{record_id}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_delete", index=index_name, id=record_id, existed=existed)
        return existed

    async def delete_all(self, index_name: str) -> int:
        """Delete every record, paging ids so huge indexes stay within SQLite limits.

        Records written while the purge runs may survive it; the returned
        count covers only the ids snapshotted here.
        """
        try:
            deleted = await asyncio.to_thread(self._delete_all_sync, index_name)
        except Exception as exc:
            raise IndexWriteFailedError(
                message=f"ChromaDB delete_all on '{index_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_delete_all", index=index_name, deleted_count=deleted)
        return deleted

    async def knn_search(
        self,
        index_name: str,
        vector: list[float],
        k: int,
        num_candidates: int,
    ) -> list[VectorHit]:
        if k <= 0:
            return []
        try:
            hits = await asyncio.to_thread(
                self._knn_search_sync, index_name, vector, k, num_candidates
            )
        except Exception as exc:
            raise SearchFailedError(
                message=f"ChromaDB query on '{index_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "chromadb_query",
            index=index_name,
            k=k,
            num_candidates=num_candidates,
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def count(self, index_name: str) -> int:
        try:
            return await asyncio.to_thread(self._count_sync, index_name)
        except Exception as exc:
            raise SearchFailedError(
                message=f"ChromaDB count on '{index_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client answers a heartbeat."""
        try:
            self._client.heartbeat()
            return True
        except Exception:  # noqa: BLE001
            return False

    # ------------------------------------------------------------------
    # Synchronous helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _collection_names(self) -> set[str]:
        # Older releases return names, newer ones return Collection objects.
        names: set[str] = set()
        for entry in self._client.list_collections():
            names.add(entry if isinstance(entry, str) else entry.name)
        return names

    def _open_collection(self, index_name: str) -> Any | None:
        cached = self._collections.get(index_name)
        if cached is not None:
            return cached
        if index_name not in self._collection_names():
            return None
        # A collection created with a different persisted embedding function
        # rejects the no-op one; open it with whatever was persisted.
        try:
            collection = self._client.get_collection(
                name=index_name,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            collection = self._client.get_collection(name=index_name)
        self._collections[index_name] = collection
        return collection

    def _require_collection(self, index_name: str) -> Any:
        collection = self._open_collection(index_name)
        if collection is None:
            raise VectorIndexError(
                message=f"Index '{index_name}' does not exist",
                provider_name=self.get_provider_name(),
            )
        return collection

    def _get_index_schema_sync(self, index_name: str) -> IndexSchema | None:
        collection = self._open_collection(index_name)
        if collection is None:
            return None

        metadata = collection.metadata or {}
        # ChromaDB's own default space is l2.
        metric = SimilarityMetric(metadata.get(_SPACE_KEY, SimilarityMetric.L2.value))
        dimension = metadata.get(_DIMENSION_KEY)
        if not dimension:
            dimension = self._infer_dimension(collection)
        return IndexSchema(name=index_name, dimension=dimension or None, metric=metric)

    @staticmethod
    def _infer_dimension(collection: Any) -> int | None:
        """Peek at one stored vector for collections that do not record a dimension."""
        if collection.count() == 0:
            return None
        sample = collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    def _create_index_sync(self, schema: IndexSchema) -> bool:
        if self._open_collection(schema.name) is not None:
            return False

        metadata: dict[str, Any] = {_SPACE_KEY: schema.metric.value}
        if schema.dimension is not None:
            metadata[_DIMENSION_KEY] = schema.dimension
        try:
            collection = self._client.create_collection(
                name=schema.name,
                metadata=metadata,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except Exception:
            # Another process may have created it between the check and here.
            if self._open_collection(schema.name) is not None:
                return False
            raise
        self._collections[schema.name] = collection
        return True

    def _upsert_sync(self, index_name: str, record: VectorRecord) -> None:
        collection = self._require_collection(index_name)
        collection.upsert(
            ids=[record.id],
            embeddings=[record.vector],
            documents=[record.document],
            metadatas=[dict(record.fields)] if record.fields else None,
        )

    def _get_sync(self, index_name: str, record_id: str) -> VectorRecord | None:
        collection = self._require_collection(index_name)
        result = collection.get(
            ids=[record_id],
            include=["documents", "metadatas", "embeddings"],
        )
        if not result["ids"]:
            return None

        embeddings = result.get("embeddings")
        vector = (
            [float(x) for x in embeddings[0]]
            if embeddings is not None and len(embeddings) > 0
            else []
        )
        documents = result.get("documents") or [""]
        metadatas = result.get("metadatas") or [{}]
        return VectorRecord(
            id=result["ids"][0],
            vector=vector,
            document=documents[0] or "",
            fields=self._stringify(metadatas[0]),
        )

    def _delete_sync(self, index_name: str, record_id: str) -> bool:
        collection = self._require_collection(index_name)
        # Chroma's delete reports nothing, so existence is checked first.
        existing = collection.get(ids=[record_id], include=["metadatas"])
        if not existing["ids"]:
            return False
        collection.delete(ids=[record_id])
        return True

    def _delete_all_sync(self, index_name: str) -> int:
        collection = self._require_collection(index_name)

        ids: list[str] = []
        offset = 0
        while True:
            page = collection.get(include=[], limit=_PAGE_SIZE, offset=offset)
            page_ids = page["ids"] or []
            ids.extend(page_ids)
            if len(page_ids) < _PAGE_SIZE:
                break
            offset += _PAGE_SIZE

        for start in range(0, len(ids), _PAGE_SIZE):
            collection.delete(ids=ids[start : start + _PAGE_SIZE])
        return len(ids)

    def _knn_search_sync(
        self,
        index_name: str,
        vector: list[float],
        k: int,
        num_candidates: int,
    ) -> list[VectorHit]:
        collection = self._require_collection(index_name)
        total = collection.count()
        if total == 0:
            return []

        # HNSW recall improves with a larger result set; trim to k afterwards.
        n_results = min(max(num_candidates, k), total)
        results = collection.query(
            query_embeddings=[vector],
            n_results=n_results,
            include=["documents", "metadatas", "distances"],
        )
        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)

        metric = SimilarityMetric(
            (collection.metadata or {}).get(_SPACE_KEY, SimilarityMetric.L2.value)
        )
        hits = [
            VectorHit(
                record=VectorRecord(
                    id=record_id,
                    vector=[],
                    document=doc or "",
                    fields=self._stringify(meta),
                ),
                score=self._distance_to_score(float(distance), metric),
            )
            for record_id, doc, meta, distance in zip(
                ids, documents, metadatas, distances, strict=True
            )
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:k]

    def _count_sync(self, index_name: str) -> int:
        collection = self._open_collection(index_name)
        return 0 if collection is None else collection.count()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _distance_to_score(distance: float, metric: SimilarityMetric) -> float:
        """Convert a ChromaDB distance into a higher-is-better similarity.

        Chroma reports ``1 - cos`` for cosine and ``1 - dot`` for inner
        product, so both invert to the raw similarity.  Squared L2 has no
        upper bound and is squashed into ``(0, 1]``.
        """
        if metric is SimilarityMetric.L2:
            return 1.0 / (1.0 + distance)
        return 1.0 - distance

    @staticmethod
    def _stringify(metadata: dict[str, Any] | None) -> dict[str, str]:
        """ChromaDB may hand back ints/floats/bools; the index contract is str -> str."""
        if not metadata:
            return {}
        return {key: str(value) for key, value in metadata.items() if value is not None}

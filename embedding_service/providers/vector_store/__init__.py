"""Vector index provider implementations.

ChromaDB is the sole vector index implementation.  It stores embeddings on
disk (persistent mode, default ./data/chromadb) or on a Chroma server (http
mode) and supports cosine, inner-product and L2 k-NN search.

To swap ChromaDB for another vector database (Elasticsearch, Qdrant),
create a new class implementing IVectorStoreProvider and register it in main.py.
"""

from embedding_service.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]

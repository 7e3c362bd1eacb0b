"""Embedding service: text embeddings, vector storage and similarity search over HTTP."""

__version__ = "0.1.0"

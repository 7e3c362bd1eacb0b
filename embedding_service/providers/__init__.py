"""Concrete adapters for the interfaces in ``embedding_service.interfaces``."""

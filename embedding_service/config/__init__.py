"""Configuration module: exports Settings and load_config."""

from embedding_service.config.loader import load_config
from embedding_service.config.settings import Settings

__all__ = ["Settings", "load_config"]

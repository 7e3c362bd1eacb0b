"""Application settings loaded from environment variables via pydantic-settings.

Values are read from (highest priority first):

  1. Environment variables, e.g. ``EMBEDDING_MODEL=nomic-embed-text``
  2. A ``.env`` file in the working directory (local development)
  3. The defaults declared below

The mapping is automatic: field ``ollama_base_url`` reads ``OLLAMA_BASE_URL``.
Settings are loaded once at start-up and are not reloaded while the
process runs.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Embedding service settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding provider ===
    # "ollama" (native /api/embed) or "openai" (any OpenAI-compatible API).
    embedding_provider: str = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    embedding_model: str = "nomic-embed-text"
    embedding_dimension: int = 768
    # Embedding large inputs on CPU-only hosts is slow; the embed call gets
    # its own timeout, separate from http_timeout_seconds.
    embedding_timeout_seconds: float = 300.0
    http_timeout_seconds: float = 30.0
    openai_api_key: str = ""
    openai_base_url: str = ""

    # === Vector index ===
    vector_index_name: str = "embeddings"
    similarity_metric: str = "cosine"
    # "persistent" keeps data on local disk; "http" talks to a Chroma server.
    chromadb_mode: str = "persistent"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_host: str = "localhost"
    chromadb_port: int = 8000
    chromadb_ssl: bool = False

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8080
    app_env: str = "development"
    log_level: str = "INFO"

    @field_validator("ollama_base_url")
    @classmethod
    def _strip_connection_string(cls, value: str) -> str:
        """Accept orchestrator connection strings such as ``Endpoint=http://host:11434``."""
        value = value.strip()
        if value.lower().startswith("endpoint="):
            value = value[len("endpoint="):]
        return value.rstrip("/")

    @field_validator("embedding_provider", "chromadb_mode", "similarity_metric")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.strip().lower()

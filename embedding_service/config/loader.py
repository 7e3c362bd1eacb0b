"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml: tuning knobs checked into the repo
                            (search candidate pool, bulk concurrency, CORS)
  2. .env file: local developer overrides (not committed)
  3. environment vars: set by the deployment

``load_config()`` reads the YAML file first, then deep-merges the
environment-derived values from :class:`Settings` on top.
"""

from pathlib import Path
from typing import Any

import yaml

from embedding_service.config.settings import Settings

_DEFAULTS: dict[str, Any] = {
    "search": {
        "default_top_k": 5,
        "min_candidates": 100,
    },
    "bulk": {
        "max_concurrency": 8,
    },
    "cors": {
        "allowed_origins": ["*"],
    },
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.  A missing file is not
            an error; built-in defaults apply.
        settings: Pre-built settings; a fresh ``Settings()`` is read otherwise.

    Returns:
        Fully resolved configuration dictionary.
    """
    config: dict[str, Any] = {}
    _deep_merge(config, _DEFAULTS)

    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "embedding": {
            "provider": settings.embedding_provider,
            "model": settings.embedding_model,
            "dimension": settings.embedding_dimension,
            "timeout_seconds": settings.embedding_timeout_seconds,
        },
        "vector_index": {
            "name": settings.vector_index_name,
            "metric": settings.similarity_metric,
            "mode": settings.chromadb_mode,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(config, env_overrides)
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        elif isinstance(value, dict):
            base[key] = {}
            _deep_merge(base[key], value)
        else:
            base[key] = value

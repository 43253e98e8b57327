"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- Static defaults checked into the repo
#   2. .env file           -- Local developer overrides (not committed)
#   3. Environment vars    -- Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# Settings-derived values on top.  _deep_merge recurses into nested dicts:
#   base = {"processing": {"chunk_size": 800}}
#   overrides = {"processing": {"max_file_size": "50MB"}}
#   result = {"processing": {"chunk_size": 800, "max_file_size": "50MB"}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
            treated as empty.
        settings: Settings to merge; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(message=f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(message=f"{path} must contain a mapping at the top level")
    else:
        yaml_config = {}

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
            "multimodal_model": settings.multimodal_model,
            "batch_size": settings.embedding_batch_size,
            "max_concurrency": settings.embedding_max_concurrency,
            "available_providers": settings.get_available_embedding_providers(),
        },
        "extraction": {
            "base_url": settings.pdfco_base_url,
            "enabled": bool(settings.pdfco_api_key),
            "max_concurrency": settings.extraction_max_concurrency,
            "poll_interval": settings.poll_interval,
            "poll_max_attempts": settings.poll_max_attempts,
        },
        "processing": {
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "max_file_size": settings.max_file_size,
        },
        "storage": {
            "backend": settings.storage_backend,
            "sqlite_db_path": settings.sqlite_db_path,
            "chunk_store": settings.chunk_store,
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "blob_dir": settings.blob_dir,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value

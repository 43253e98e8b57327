"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (in priority order):
#
#   1. **Environment variables** -- e.g., VOYAGE_API_KEY=pa-abc123
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field `voyage_api_key` maps to env var `VOYAGE_API_KEY`.  Defaults apply
# when neither source sets a value.
#
# Empty API keys mean "not configured": build_components() in main.py
# skips providers whose key is empty.
# ──────────────────────────────────────────────────────────────────────
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.pipeline import ProcessingOptions


class Settings(BaseSettings):
    """corpusFlow application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding Providers ===
    voyage_api_key: str = ""
    voyage_base_url: str = "https://api.voyageai.com/v1"
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, etc.)
    openai_embedding_model: str = ""
    # "auto" prefers Voyage, then OpenAI, by which key is set.
    embedding_provider: Literal["auto", "voyage", "openai"] = "auto"
    embedding_model: str = "voyage-3"
    multimodal_model: str = "voyage-multimodal-3"

    # === PDF Extraction ===
    pdfco_api_key: str = ""
    pdfco_base_url: str = "https://api.pdf.co/v1"
    http_timeout: float = 30.0
    extraction_max_concurrency: int = 2
    poll_interval: float = 2.0
    poll_max_attempts: int = 30

    # === Processing ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_file_size: str = "100MB"
    extract_tables: bool = True
    extract_images: bool = False
    extract_structured: bool = False
    ocr_enabled: bool = False
    ocr_language: str = "eng"

    # === Embedding Batcher ===
    embedding_batch_size: int = 128
    embedding_max_concurrency: int = 30
    multimodal_prefix: int = 10
    multimodal_chunk_cap: int = 50
    store_batch_size: int = 10

    # === Storage ===
    storage_backend: Literal["memory", "sqlite"] = "sqlite"
    sqlite_db_path: str = "data/corpusflow.db"
    chunk_store: Literal["memory", "chromadb"] = "chromadb"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "corpusflow_chunks"
    blob_dir: str = "data/blobs"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    anonymized_telemetry: bool = False

    def processing_options(self) -> ProcessingOptions:
        """Return the default per-document options derived from these settings."""
        return ProcessingOptions(
            extract_tables=self.extract_tables,
            extract_images=self.extract_images,
            extract_structured=self.extract_structured,
            ocr_enabled=self.ocr_enabled,
            ocr_language=self.ocr_language,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            embedding_model=self.embedding_model,
            multimodal_model=self.multimodal_model,
        )

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.voyage_api_key:
            providers.append("voyage")
        if self.openai_api_key:
            providers.append("openai")
        return providers

"""Pipeline orchestration for document ingestion."""

from src.pipeline.ingestion_pipeline import IngestionPipeline

__all__ = ["IngestionPipeline"]

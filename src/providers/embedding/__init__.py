"""Embedding provider implementations.

Two implementations of IEmbeddingProvider:
    1. VoyageEmbeddingProvider -- Voyage AI (text + multimodal), the default.
    2. OpenAIEmbeddingProvider -- any OpenAI-compatible /embeddings endpoint.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.embedding.voyage_embedding_provider import VoyageEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "VoyageEmbeddingProvider"]

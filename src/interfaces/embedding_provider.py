"""Abstract base class for embedding service providers.

Defines the contract for turning text (and, for multimodal models, text
paired with an image) into vectors.  Providers are thin HTTP/SDK adapters:
batching, ordering and rate limiting live in
:class:`~src.services.ingestion.embedding_batcher.EmbeddingBatcher`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict


class MultimodalInput(BaseModel):
    """One multimodal embedding input: text plus an optional image URL."""

    model_config = ConfigDict(frozen=True)

    text: str
    image_url: str | None = None


# Concrete implementations:
#   VoyageEmbeddingProvider  -- Voyage AI text + multimodal endpoints (httpx)
#   OpenAIEmbeddingProvider  -- any OpenAI-compatible /embeddings API (text only)
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and retrieval."""

    @abstractmethod
    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """Generate embedding vectors for one batch of texts.

        Parameters
        ----------
        texts:
            At most 128 strings.  Callers are responsible for batching.
        model:
            Model name; ``None`` selects the provider's default model.

        Returns
        -------
        list[list[float]]
            One vector per input, in input order.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the API call fails.
        """

    @abstractmethod
    async def embed_multimodal(
        self,
        inputs: list[MultimodalInput],
        model: str | None = None,
    ) -> list[list[float]]:
        """Embed text/image pairs with a multimodal model.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the provider does not support multimodal input or the call fails.
        """

    @abstractmethod
    def get_dimension(self, model: str | None = None) -> int:
        """Return the vector dimension produced by *model* (or the default model)."""

    @abstractmethod
    def supports_multimodal(self) -> bool:
        """Return ``True`` if :meth:`embed_multimodal` is implemented."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"voyage"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""

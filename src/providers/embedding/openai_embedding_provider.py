"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works against real OpenAI and OpenAI-compatible hosts (TogetherAI,
Fireworks, a local Ollama ``/v1`` endpoint) through ``base_url``.
Text only: :meth:`embed_multimodal` always raises.
"""

from __future__ import annotations

import openai
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider, MultimodalInput
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "text-embedding-3-small"

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "nomic-embed-text": 768,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "",
        default_model: str = "",
    ) -> None:
        self._api_key = api_key

        client_kwargs: dict = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._default_model = default_model or _DEFAULT_MODEL
        self._provider_label = "openai-compatible" if base_url else "openai"

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        if not texts:
            return []

        model_name = self._resolve_model(model)
        try:
            response = await self._client.embeddings.create(input=texts, model=model_name)
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "openai_embedding_batch",
            model=model_name,
            provider=self._provider_label,
            batch_size=len(texts),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [item.embedding for item in response.data]

    async def embed_multimodal(
        self,
        inputs: list[MultimodalInput],
        model: str | None = None,
    ) -> list[list[float]]:
        raise EmbeddingError(
            message="Multimodal embeddings are not supported by this provider",
            provider_name=self.get_provider_name(),
        )

    def get_dimension(self, model: str | None = None) -> int:
        return _MODEL_DIMENSIONS.get(self._resolve_model(model), 768)

    def supports_multimodal(self) -> bool:
        return False

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    def _resolve_model(self, model: str | None) -> str:
        # Voyage model names reach us when the default options were built for Voyage.
        if not model or model.startswith("voyage-"):
            return self._default_model
        return model

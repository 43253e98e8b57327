"""Voyage AI embedding provider adapter.

Talks to the Voyage REST API directly with an injected
``httpx.AsyncClient``: ``/v1/embeddings`` for text and
``/v1/multimodalembeddings`` for text paired with an image URL.
Batching and rate limiting are the caller's job
(:class:`~src.services.ingestion.embedding_batcher.EmbeddingBatcher`);
each call here is a single request.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider, MultimodalInput
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BASE_URL = "https://api.voyageai.com/v1"
_DEFAULT_MODEL = "voyage-3"
_DEFAULT_MULTIMODAL_MODEL = "voyage-multimodal-3"

_MODEL_DIMENSIONS: dict[str, int] = {
    "voyage-3": 1024,
    "voyage-3-lite": 512,
    "voyage-3-large": 1024,
    "voyage-multimodal-3": 1024,
    "voyage-code-3": 1024,
}


class VoyageEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the Voyage AI API.

    Parameters
    ----------
    api_key:
        Voyage API key.  An empty key makes :meth:`is_available` false.
    default_model:
        Model used when ``embed`` is called with ``model=None``.
    multimodal_model:
        Model used when ``embed_multimodal`` is called with ``model=None``.
    http_client:
        Injected client (tests pass one built on ``httpx.MockTransport``).
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        default_model: str = _DEFAULT_MODEL,
        multimodal_model: str = _DEFAULT_MULTIMODAL_MODEL,
        base_url: str = _DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._default_model = default_model
        self._multimodal_model = multimodal_model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        if not texts:
            return []
        model_name = model or self._default_model
        payload = {"input": texts, "model": model_name, "input_type": "document"}
        data = await self._post("/embeddings", payload)
        vectors = self._extract_vectors(data, expected=len(texts))
        logger.info(
            "voyage_embedding_batch",
            model=model_name,
            batch_size=len(texts),
            tokens=(data.get("usage") or {}).get("total_tokens"),
        )
        return vectors

    async def embed_multimodal(
        self,
        inputs: list[MultimodalInput],
        model: str | None = None,
    ) -> list[list[float]]:
        if not inputs:
            return []
        model_name = model or self._multimodal_model
        payload = {
            "inputs": [self._multimodal_content(item) for item in inputs],
            "model": model_name,
            "input_type": "document",
        }
        data = await self._post("/multimodalembeddings", payload)
        vectors = self._extract_vectors(data, expected=len(inputs))
        logger.info("voyage_multimodal_batch", model=model_name, batch_size=len(inputs))
        return vectors

    def get_dimension(self, model: str | None = None) -> int:
        return _MODEL_DIMENSIONS.get(model or self._default_model, 1024)

    def supports_multimodal(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "voyage"

    def is_available(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self._api_key:
            raise EmbeddingError(
                message="VOYAGE_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )
        try:
            response = await self._http.post(
                f"{self._base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise EmbeddingError(
                message=f"Voyage request timed out: {path}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise EmbeddingError(
                message=f"Voyage HTTP {exc.response.status_code}: {exc.response.text[:200]}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise EmbeddingError(
                message=f"Voyage request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _extract_vectors(self, data: dict[str, Any], expected: int) -> list[list[float]]:
        items = data.get("data") or []
        # The API reports each vector's input position; don't trust list order.
        ordered = sorted(items, key=lambda item: item.get("index", 0))
        vectors = [list(item["embedding"]) for item in ordered]
        if len(vectors) != expected:
            raise EmbeddingError(
                message=f"Voyage returned {len(vectors)} embeddings for {expected} inputs",
                provider_name=self.get_provider_name(),
            )
        return vectors

    @staticmethod
    def _multimodal_content(item: MultimodalInput) -> dict[str, Any]:
        content: list[dict[str, str]] = [{"type": "text", "text": item.text}]
        if item.image_url:
            content.append({"type": "image_url", "image_url": item.image_url})
        return {"content": content}

"""Unit tests for embedding provider adapters -- Voyage, OpenAI-compatible."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from src.interfaces.embedding_provider import MultimodalInput
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.embedding.voyage_embedding_provider import VoyageEmbeddingProvider
from src.utils.errors import EmbeddingError


def _voyage(handler, api_key: str = "vo-test") -> tuple[VoyageEmbeddingProvider, list[httpx.Request]]:
    """Build a Voyage provider whose HTTP traffic goes to *handler*."""
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return VoyageEmbeddingProvider(api_key=api_key, http_client=client), seen


def _embedding_payload(vectors: list[list[float]], reverse: bool = False) -> dict:
    data = [{"index": i, "embedding": v} for i, v in enumerate(vectors)]
    if reverse:
        data.reverse()
    return {"data": data, "usage": {"total_tokens": 12}}


# ======================================================================
# Voyage
# ======================================================================


class TestVoyageEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_sends_document_input_type(self) -> None:
        provider, seen = _voyage(
            lambda request: httpx.Response(200, json=_embedding_payload([[0.1, 0.2], [0.3, 0.4]]))
        )

        vectors = await provider.embed(["hello", "world"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        body = json.loads(seen[0].content)
        assert body == {"input": ["hello", "world"], "model": "voyage-3", "input_type": "document"}
        assert seen[0].url.path == "/v1/embeddings"
        assert seen[0].headers["Authorization"] == "Bearer vo-test"

    @pytest.mark.asyncio
    async def test_vectors_are_ordered_by_index(self) -> None:
        provider, _ = _voyage(
            lambda request: httpx.Response(
                200, json=_embedding_payload([[1.0], [2.0], [3.0]], reverse=True)
            )
        )
        assert await provider.embed(["a", "b", "c"]) == [[1.0], [2.0], [3.0]]

    @pytest.mark.asyncio
    async def test_multimodal_payload(self) -> None:
        provider, seen = _voyage(
            lambda request: httpx.Response(200, json=_embedding_payload([[0.5, 0.5]]))
        )

        vectors = await provider.embed_multimodal(
            [MultimodalInput(text="a chart", image_url="https://img/0.png")]
        )

        assert vectors == [[0.5, 0.5]]
        body = json.loads(seen[0].content)
        assert seen[0].url.path == "/v1/multimodalembeddings"
        assert body["model"] == "voyage-multimodal-3"
        assert body["inputs"][0]["content"] == [
            {"type": "text", "text": "a chart"},
            {"type": "image_url", "image_url": "https://img/0.png"},
        ]

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        provider, _ = _voyage(lambda request: httpx.Response(429, text="Too Many Requests"))

        with pytest.raises(EmbeddingError) as exc_info:
            await provider.embed(["hello"])

        assert "429" in exc_info.value.message
        assert exc_info.value.provider_name == "voyage"

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def _timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        provider, _ = _voyage(_timeout)
        with pytest.raises(EmbeddingError, match="timed out"):
            await provider.embed(["hello"])

    @pytest.mark.asyncio
    async def test_count_mismatch(self) -> None:
        provider, _ = _voyage(lambda request: httpx.Response(200, json=_embedding_payload([[1.0]])))
        with pytest.raises(EmbeddingError):
            await provider.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_missing_key_fails_without_request(self) -> None:
        provider, seen = _voyage(lambda request: httpx.Response(200, json={}), api_key="")

        assert provider.is_available() is False
        with pytest.raises(EmbeddingError):
            await provider.embed(["hello"])
        assert seen == []

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        provider, seen = _voyage(lambda request: httpx.Response(200, json={}))
        assert await provider.embed([]) == []
        assert seen == []

    def test_metadata(self) -> None:
        provider, _ = _voyage(lambda request: httpx.Response(200, json={}))
        assert provider.get_provider_name() == "voyage"
        assert provider.supports_multimodal() is True
        assert provider.get_dimension("voyage-3-lite") == 512
        assert provider.get_dimension() == 1024


# ======================================================================
# OpenAI-compatible
# ======================================================================


def _openai_response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=v) for v in vectors]
    response.usage = MagicMock(total_tokens=10)
    return response


class TestOpenAIEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_success(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            return_value=_openai_response([[0.1] * 4, [0.2] * 4])
        )

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(api_key="sk-test")
            result = await provider.embed(["hello", "world"])

        assert result == [[0.1] * 4, [0.2] * 4]
        mock_client.embeddings.create.assert_awaited_once_with(
            input=["hello", "world"], model="text-embedding-3-small"
        )

    @pytest.mark.asyncio
    async def test_voyage_model_names_map_to_default(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_openai_response([[1.0]]))

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(api_key="sk-test", default_model="nomic-embed-text")
            await provider.embed(["hello"], model="voyage-3")

        assert mock_client.embeddings.create.await_args.kwargs["model"] == "nomic-embed-text"

    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="Rate limit", request=MagicMock(), body=None)
        )

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(api_key="sk-test")
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["test"])

        assert exc_info.value.provider_name == "openai"

    @pytest.mark.asyncio
    async def test_multimodal_is_unsupported(self) -> None:
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        assert provider.supports_multimodal() is False
        with pytest.raises(EmbeddingError):
            await provider.embed_multimodal([MultimodalInput(text="x")])

    def test_compatible_host_label(self) -> None:
        provider = OpenAIEmbeddingProvider(api_key="key", base_url="http://localhost:11434/v1")
        assert provider.get_provider_name() == "openai-compatible"
        assert provider.is_available() is True

    def test_dimension(self) -> None:
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        assert provider.get_dimension() == 1536
        assert provider.get_dimension("text-embedding-3-large") == 3072

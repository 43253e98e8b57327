"""Unit tests for EmbeddingBatcher -- ordering, batching and all-or-nothing failure."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.models.chunk import ChunkDraft
from src.models.parsed import ParsedImage
from src.services.ingestion.embedding_batcher import EmbeddingBatcher
from src.utils.errors import EmbeddingError, StoreError


def _drafts(count: int) -> list[ChunkDraft]:
    return [ChunkDraft(content=f"chunk number {i}", tokens=4) for i in range(count)]


class TestEmbed:
    @pytest.mark.asyncio
    async def test_preserves_input_order(self, mock_embedding_provider, embed_text) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, batch_size=3)
        texts = [f"text {i}" for i in range(10)]

        vectors = await batcher.embed(texts)

        assert vectors == [embed_text(t) for t in texts]

    @pytest.mark.asyncio
    async def test_splits_into_provider_batches(self, mock_embedding_provider) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, batch_size=4)

        await batcher.embed([f"t{i}" for i in range(10)], model="voyage-3")

        sizes = sorted(len(texts) for texts, _ in mock_embedding_provider.calls)
        assert sizes == [2, 4, 4]
        assert {model for _, model in mock_embedding_provider.calls} == {"voyage-3"}

    @pytest.mark.asyncio
    async def test_default_model_is_used(self, mock_embedding_provider) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, default_model="voyage-3-lite")
        await batcher.embed(["hello"])
        assert mock_embedding_provider.calls[0][1] == "voyage-3-lite"

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self, mock_embedding_provider) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider)
        assert await batcher.embed([]) == []
        assert mock_embedding_provider.calls == []

    @pytest.mark.asyncio
    async def test_embed_query(self, mock_embedding_provider, embed_text) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider)
        assert await batcher.embed_query("revenue growth") == embed_text("revenue growth")

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, mock_embedding_provider) -> None:
        in_flight = 0
        peak = 0

        async def _slow_embed(texts, model=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return [[1.0, 0.0] for _ in texts]

        mock_embedding_provider.embed = _slow_embed
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, batch_size=1, max_concurrency=2)

        await batcher.embed([f"t{i}" for i in range(8)])

        assert peak == 2

    def test_rejects_non_positive_batch_size(self, mock_embedding_provider) -> None:
        with pytest.raises(ValueError):
            EmbeddingBatcher(provider=mock_embedding_provider, batch_size=0)


class TestEmbedFailures:
    @pytest.mark.asyncio
    async def test_any_failed_batch_fails_the_call(self, mock_embedding_provider) -> None:
        calls = 0

        async def _flaky(texts, model=None):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise RuntimeError("rate limited")
            return [[1.0, 0.0] for _ in texts]

        mock_embedding_provider.embed = _flaky
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, batch_size=2, max_concurrency=1)

        with pytest.raises(EmbeddingError) as exc_info:
            await batcher.embed([f"t{i}" for i in range(6)])

        assert "rate limited" in exc_info.value.message
        assert exc_info.value.provider_name == "mock-embedding"

    @pytest.mark.asyncio
    async def test_other_domain_errors_become_embedding_errors(
        self, mock_embedding_provider
    ) -> None:
        mock_embedding_provider.embed = AsyncMock(
            side_effect=StoreError(message="boom", provider_name="x")
        )
        batcher = EmbeddingBatcher(provider=mock_embedding_provider)

        with pytest.raises(EmbeddingError) as exc_info:
            await batcher.embed(["a"])
        assert exc_info.value.provider_name == "x"

    @pytest.mark.asyncio
    async def test_wrong_vector_count(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed = AsyncMock(return_value=[[1.0]])
        batcher = EmbeddingBatcher(provider=mock_embedding_provider)

        with pytest.raises(EmbeddingError):
            await batcher.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_inconsistent_dimension(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed = AsyncMock(return_value=[[1.0, 0.0], [1.0]])
        batcher = EmbeddingBatcher(provider=mock_embedding_provider)

        with pytest.raises(EmbeddingError):
            await batcher.embed(["a", "b"])


class TestEmbedChunks:
    @pytest.mark.asyncio
    async def test_text_only(self, mock_embedding_provider) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, default_model="voyage-3")

        batch = await batcher.embed_chunks(_drafts(3))

        assert len(batch.vectors) == 3
        assert batch.models == ["voyage-3"] * 3
        assert mock_embedding_provider.multimodal_calls == []

    @pytest.mark.asyncio
    async def test_multimodal_prefix(self, mock_embedding_provider) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, multimodal_prefix=2)
        images = [ParsedImage(url="https://img/0.png"), ParsedImage(url="https://img/1.png")]

        batch = await batcher.embed_chunks(
            _drafts(5),
            images=images,
            model="voyage-3",
            multimodal_model="voyage-multimodal-3",
            multimodal=True,
        )

        assert batch.models == ["voyage-multimodal-3"] * 2 + ["voyage-3"] * 3
        inputs, model = mock_embedding_provider.multimodal_calls[0]
        assert model == "voyage-multimodal-3"
        assert [i.image_url for i in inputs] == ["https://img/0.png", "https://img/1.png"]
        assert len(mock_embedding_provider.calls[0][0]) == 3

    @pytest.mark.asyncio
    async def test_last_image_is_reused(self, mock_embedding_provider) -> None:
        batcher = EmbeddingBatcher(provider=mock_embedding_provider, multimodal_prefix=3)

        await batcher.embed_chunks(
            _drafts(3), images=[ParsedImage(url="https://img/only.png")], multimodal=True
        )

        inputs, _ = mock_embedding_provider.multimodal_calls[0]
        assert [i.image_url for i in inputs] == ["https://img/only.png"] * 3

    @pytest.mark.asyncio
    async def test_text_only_provider_ignores_images(self, text_only_embedding_provider) -> None:
        provider = text_only_embedding_provider
        batcher = EmbeddingBatcher(provider=provider)

        await batcher.embed_chunks(
            _drafts(2), images=[ParsedImage(url="https://img/0.png")], multimodal=True
        )

        assert provider.multimodal_calls == []
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_no_drafts(self, mock_embedding_provider) -> None:
        batch = await EmbeddingBatcher(provider=mock_embedding_provider).embed_chunks([])
        assert batch.vectors == []
        assert batch.models == []

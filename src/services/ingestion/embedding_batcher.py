"""Order-preserving, rate-limited batch embedding.

:class:`EmbeddingBatcher` sits between the pipeline and an
:class:`~src.interfaces.embedding_provider.IEmbeddingProvider`.  It splits
input into provider-sized batches, fans them out under its own semaphore,
and reassembles the vectors in input order.  Any failed batch fails the
whole call: callers never see a partial vector set.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.interfaces.embedding_provider import IEmbeddingProvider, MultimodalInput
from src.models.chunk import ChunkDraft
from src.models.parsed import ParsedImage
from src.utils.concurrency import throttled_gather
from src.utils.errors import CorpusFlowError, EmbeddingError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddedBatch(BaseModel):
    """Vectors for a list of chunks plus the model that produced each one."""

    model_config = ConfigDict(frozen=True)

    vectors: list[list[float]] = Field(default_factory=list)
    models: list[str] = Field(default_factory=list)


class EmbeddingBatcher:
    """Batches embedding requests against a single provider.

    Parameters
    ----------
    provider:
        The embedding backend.
    batch_size:
        Inputs per provider call (default 128).
    max_concurrency:
        Provider calls allowed in flight at once (default 30).
    multimodal_prefix:
        How many leading chunks go to the multimodal endpoint when
        multimodal embedding is requested (default 10).
    default_model:
        Text model used when no model is passed.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = 128,
        max_concurrency: int = 30,
        multimodal_prefix: int = 10,
        default_model: str | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._provider = provider
        self._batch_size = batch_size
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._multimodal_prefix = multimodal_prefix
        self._default_model = default_model

    @property
    def provider(self) -> IEmbeddingProvider:
        return self._provider

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, texts: Sequence[str], model: str | None = None) -> list[list[float]]:
        """Embed *texts*, returning one vector per input in input order.

        Raises
        ------
        EmbeddingError
            If any batch fails, returns the wrong number of vectors, or the
            vector dimension is not constant.
        """
        if not texts:
            return []

        model_name = model or self._default_model
        batches = [
            list(texts[start : start + self._batch_size])
            for start in range(0, len(texts), self._batch_size)
        ]

        try:
            results = await throttled_gather(
                [self._provider.embed(batch, model_name) for batch in batches],
                semaphore=self._semaphore,
            )
        except EmbeddingError:
            raise
        except CorpusFlowError as exc:
            raise EmbeddingError(message=exc.message, provider_name=exc.provider_name) from exc
        except Exception as exc:
            raise EmbeddingError(
                message=f"Embedding batch failed: {exc}",
                provider_name=self._provider.get_provider_name(),
            ) from exc

        vectors: list[list[float]] = []
        for batch, batch_vectors in zip(batches, results, strict=True):
            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    message=(
                        f"Provider returned {len(batch_vectors)} vectors "
                        f"for a batch of {len(batch)}"
                    ),
                    provider_name=self._provider.get_provider_name(),
                )
            vectors.extend(batch_vectors)

        self._check_dimension(vectors)
        logger.info(
            "embedding_batches_complete",
            texts=len(texts),
            batches=len(batches),
            model=model_name,
            dimension=len(vectors[0]),
        )
        return vectors

    async def embed_query(self, text: str, model: str | None = None) -> list[float]:
        """Embed a single query string."""
        vectors = await self.embed([text], model)
        return vectors[0]

    async def embed_chunks(
        self,
        drafts: Sequence[ChunkDraft],
        images: Sequence[ParsedImage] = (),
        model: str | None = None,
        multimodal_model: str | None = None,
        multimodal: bool = False,
    ) -> EmbeddedBatch:
        """Embed chunk drafts, optionally mixing in multimodal vectors.

        With *multimodal* set (and images available on a provider that
        supports it), the first ``multimodal_prefix`` drafts are paired
        with ``images[min(i, len(images) - 1)]`` and embedded by the
        multimodal model; the rest use the text model.
        """
        text_model = model or self._default_model or ""
        texts = [d.content for d in drafts]
        if not texts:
            return EmbeddedBatch()

        use_multimodal = multimodal and bool(images) and self._provider.supports_multimodal()
        if not use_multimodal:
            vectors = await self.embed(texts, text_model or None)
            return EmbeddedBatch(vectors=vectors, models=[text_model] * len(vectors))

        prefix = min(self._multimodal_prefix, len(texts))
        inputs = [
            MultimodalInput(text=texts[i], image_url=images[min(i, len(images) - 1)].url)
            for i in range(prefix)
        ]
        mm_model = multimodal_model or ""

        try:
            async with self._semaphore:
                mm_vectors = await self._provider.embed_multimodal(inputs, mm_model or None)
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"Multimodal embedding failed: {exc}",
                provider_name=self._provider.get_provider_name(),
            ) from exc

        if len(mm_vectors) != prefix:
            raise EmbeddingError(
                message=(
                    f"Provider returned {len(mm_vectors)} multimodal vectors "
                    f"for {prefix} inputs"
                ),
                provider_name=self._provider.get_provider_name(),
            )

        rest = await self.embed(texts[prefix:], text_model or None)
        logger.info("multimodal_embedding_mixed", multimodal=prefix, text=len(rest))
        return EmbeddedBatch(
            vectors=[*mm_vectors, *rest],
            models=[mm_model] * prefix + [text_model] * len(rest),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _check_dimension(self, vectors: list[list[float]]) -> None:
        dimension = len(vectors[0])
        if dimension == 0 or any(len(v) != dimension for v in vectors):
            raise EmbeddingError(
                message="Provider returned vectors of inconsistent dimension",
                provider_name=self._provider.get_provider_name(),
            )

"""Shared pytest fixtures for the corpusFlow test suite."""

from __future__ import annotations

import hashlib
import re
import struct
from pathlib import Path

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider, MultimodalInput
from src.models.pipeline import ProcessingOptions
from src.pipeline.ingestion_pipeline import IngestionPipeline
from src.providers.blob.memory_blob_store import MemoryBlobStore
from src.providers.store.memory_stores import (
    MemoryChunkStore,
    MemoryDocumentStore,
    MemoryJobStore,
    MemoryQueryHistory,
)
from src.services.ingestion.chunker import SentenceChunker
from src.services.ingestion.embedding_batcher import EmbeddingBatcher
from src.services.ingestion.parsers import build_default_registry
from src.services.retrieval_engine import RetrievalEngine
from src.utils.file_types import FileTypeResolver


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Deterministic embedding provider
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 128
_WORD_RE = re.compile(r"[a-z0-9]+")


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector by hashing *text*.

    SHA-256 bytes are unpacked as unsigned ints and mapped into ``[-1, 1]``,
    then normalised.  Same text always produces the same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    values = [(v / 0xFFFFFFFF) * 2.0 - 1.0 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


def _bag_of_words_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Hash each word into a bucket so texts sharing words score as similar."""
    vector = [0.0] * dim
    for word in _WORD_RE.findall(text.lower()):
        bucket = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:4], "little")
        vector[bucket % dim] += 1.0
    magnitude = sum(v * v for v in vector) ** 0.5
    if magnitude == 0:
        return _hash_to_vector(text, dim)
    return [v / magnitude for v in vector]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    Records every call so tests can assert on batching.
    """

    def __init__(self, multimodal: bool = True) -> None:
        self._multimodal = multimodal
        self.calls: list[tuple[list[str], str | None]] = []
        self.multimodal_calls: list[tuple[list[MultimodalInput], str | None]] = []

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        self.calls.append((list(texts), model))
        return [_bag_of_words_vector(t) for t in texts]

    async def embed_multimodal(
        self,
        inputs: list[MultimodalInput],
        model: str | None = None,
    ) -> list[list[float]]:
        self.multimodal_calls.append((list(inputs), model))
        return [_bag_of_words_vector(i.text) for i in inputs]

    def get_dimension(self, model: str | None = None) -> int:
        return _EMBEDDING_DIM

    def supports_multimodal(self) -> bool:
        return self._multimodal

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def embed_text():
    """Expose the mock's text → vector function to tests."""
    return _bag_of_words_vector


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def text_only_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider(multimodal=False)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def document_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def job_store() -> MemoryJobStore:
    return MemoryJobStore()


@pytest.fixture
def chunk_store() -> MemoryChunkStore:
    return MemoryChunkStore()


@pytest.fixture
def query_history() -> MemoryQueryHistory:
    return MemoryQueryHistory()


@pytest.fixture
def batcher(mock_embedding_provider: MockEmbeddingProvider) -> EmbeddingBatcher:
    return EmbeddingBatcher(provider=mock_embedding_provider, batch_size=4, max_concurrency=2)


@pytest.fixture
def small_options() -> ProcessingOptions:
    """Options with a small chunk budget so short fixtures yield several chunks."""
    return ProcessingOptions(chunk_size=30, chunk_overlap=10)


@pytest.fixture
def pipeline(
    blob_store: MemoryBlobStore,
    document_store: MemoryDocumentStore,
    job_store: MemoryJobStore,
    chunk_store: MemoryChunkStore,
    batcher: EmbeddingBatcher,
    small_options: ProcessingOptions,
) -> IngestionPipeline:
    return IngestionPipeline(
        blob_store=blob_store,
        document_store=document_store,
        job_store=job_store,
        chunk_store=chunk_store,
        file_types=FileTypeResolver(default_max_size="1MB"),
        parsers=build_default_registry(),
        chunker=SentenceChunker(chunk_size=30, chunk_overlap=10),
        batcher=batcher,
        default_options=small_options,
    )


@pytest.fixture
def retrieval_engine(
    batcher: EmbeddingBatcher,
    chunk_store: MemoryChunkStore,
    document_store: MemoryDocumentStore,
    query_history: MemoryQueryHistory,
) -> RetrievalEngine:
    return RetrievalEngine(
        batcher=batcher,
        chunk_store=chunk_store,
        document_store=document_store,
        query_history=query_history,
    )


@pytest.fixture
def sample_text() -> str:
    return (
        "Quarterly revenue grew by twelve percent. "
        "The growth came mostly from the European market. "
        "Operating costs stayed flat compared to last year. "
        "Dr. Smith presented the forecast for the next quarter. "
        "Hiring will focus on engineering and support roles. "
        "The board approved a new budget for research."
    )

"""Vector-backed chunk store implementations.

ChromaDB persists chunk embeddings on disk (CHROMADB_PERSIST_DIR) and
answers nearest-neighbour queries in cosine space.
"""

from src.providers.vector_store.chromadb_chunk_store import ChromaDBChunkStore

__all__ = ["ChromaDBChunkStore"]

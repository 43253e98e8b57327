"""In-process blob store used by tests and the ``memory`` storage backend."""

from __future__ import annotations

import uuid

from src.interfaces.blob_store import IBlobStore
from src.utils.errors import StoreError


class MemoryBlobStore(IBlobStore):
    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def put(self, data: bytes, file_name: str) -> str:
        file_ref = f"{uuid.uuid4().hex}/{file_name}"
        self._blobs[file_ref] = bytes(data)
        return file_ref

    async def get(self, file_ref: str) -> bytes:
        try:
            return self._blobs[file_ref]
        except KeyError as exc:
            raise StoreError(
                message=f"Blob not found: {file_ref}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "memory"

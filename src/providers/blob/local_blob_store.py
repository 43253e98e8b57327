"""Filesystem-backed blob store.

Each upload is written to ``<root>/<uuid>_<safe file name>``; the file
name part of that path is the ``file_ref``.  Disk I/O runs in a worker
thread so the event loop is never blocked on large uploads.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path

import structlog

from src.interfaces.blob_store import IBlobStore
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LocalBlobStore(IBlobStore):
    """Stores uploads as files under a single directory."""

    def __init__(self, root_dir: str | Path = "data/blobs") -> None:
        self._root = Path(root_dir)

    async def put(self, data: bytes, file_name: str) -> str:
        safe_name = _UNSAFE_CHARS.sub("_", Path(file_name).name) or "upload"
        file_ref = f"{uuid.uuid4().hex}_{safe_name}"
        path = self._root / file_ref
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            raise StoreError(
                message=f"Failed to write blob {file_ref}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("blob_stored", file_ref=file_ref, size=len(data))
        return file_ref

    async def get(self, file_ref: str) -> bytes:
        # Refs are bare file names; anything path-like is not ours.
        if not file_ref or Path(file_ref).name != file_ref:
            raise StoreError(
                message=f"Invalid blob reference: {file_ref!r}",
                provider_name=self.get_provider_name(),
            )
        path = self._root / file_ref
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise StoreError(
                message=f"Blob not found: {file_ref}",
                provider_name=self.get_provider_name(),
            ) from exc
        except OSError as exc:
            raise StoreError(
                message=f"Failed to read blob {file_ref}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "local"

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

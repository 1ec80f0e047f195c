"""Local filesystem storage for uploaded files.

Files are written under ``<root>/<owner>/<uuid>-<filename>``; the returned
storage path is relative to the root so the database never records
absolute locations.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path

import structlog

from talon.interfaces.file_storage import IFileStorage
from talon.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_ROOT = Path("data/uploads")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_component(value: str, fallback: str) -> str:
    cleaned = _UNSAFE_CHARS_RE.sub("_", value.rsplit("/", 1)[-1]).strip("._")
    return cleaned or fallback


class LocalFileStorage(IFileStorage):
    """Stores uploads on the local disk."""

    def __init__(self, root: str | Path = _DEFAULT_ROOT) -> None:
        self._root = Path(root)

    def _resolve(self, storage_path: str) -> Path:
        resolved = (self._root / storage_path).resolve()
        if not resolved.is_relative_to(self._root.resolve()):
            raise StorageError(
                message=f"Storage path escapes the storage root: {storage_path}",
                provider_name="local_storage",
            )
        return resolved

    async def save(self, owner: str, filename: str, data: bytes) -> str:
        storage_path = f"{_safe_component(owner, 'anonymous')}/{uuid.uuid4()}-{_safe_component(filename, 'upload')}"
        target = self._resolve(storage_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, data)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to store upload: {exc}",
                provider_name="local_storage",
            ) from exc
        logger.info("file_stored", storage_path=storage_path, size=len(data))
        return storage_path

    async def load(self, storage_path: str) -> bytes:
        target = self._resolve(storage_path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to download file: {storage_path}",
                provider_name="local_storage",
            ) from exc

    async def delete(self, storage_path: str) -> bool:
        target = self._resolve(storage_path)
        if not target.exists():
            return False
        try:
            await asyncio.to_thread(target.unlink)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to delete file: {storage_path}",
                provider_name="local_storage",
            ) from exc
        return True

"""Abstract base class for raw upload storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: LocalFileStorage
# Located in: talon/providers/storage/
class IFileStorage(ABC):
    """Contract for storing and retrieving uploaded file bytes."""

    @abstractmethod
    async def save(self, owner: str, filename: str, data: bytes) -> str:
        """Store *data* and return an opaque storage path for later retrieval."""

    @abstractmethod
    async def load(self, storage_path: str) -> bytes:
        """Return the bytes stored at *storage_path*.

        Raises
        ------
        talon.utils.errors.StorageError
            If nothing is stored at that path.
        """

    @abstractmethod
    async def delete(self, storage_path: str) -> bool:
        """Remove stored bytes.  Returns ``False`` if nothing was there."""

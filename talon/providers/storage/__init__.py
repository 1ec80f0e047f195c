"""Upload file storage implementations."""

from talon.providers.storage.local_file_storage import LocalFileStorage

__all__ = ["LocalFileStorage"]

"""Abstract base class for external document-to-Markdown conversion services.

A converter is an optional, higher-fidelity first attempt at extraction.
It either returns the complete Markdown for a file or raises; the text
extractor then falls back to local heuristics without emitting partial
output.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: UnstructuredConverter
# Located in: talon/providers/conversion/
class IDocumentConverter(ABC):
    """Contract for a remote file-to-Markdown conversion service."""

    @abstractmethod
    async def convert(self, data: bytes, filename: str) -> str:
        """Convert raw file bytes to Markdown.

        Headings, list items and tables should survive as Markdown structure.

        Raises
        ------
        talon.utils.errors.ExtractionError
            If the service fails, times out, or produces no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"unstructured"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the service is configured."""

"""Remote document-to-Markdown conversion adapters."""

from talon.providers.conversion.unstructured_converter import UnstructuredConverter

__all__ = ["UnstructuredConverter"]

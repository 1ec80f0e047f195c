"""Text extraction: extension dispatch plus local fallback strategies."""

from talon.services.extraction.text_extractor import TextExtractor, format_csv

__all__ = ["TextExtractor", "format_csv"]

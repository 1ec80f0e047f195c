"""Utility modules for TALON.

- **errors** -- Exception hierarchy rooted at TalonError; each pipeline
  stage raises its own subclass so callers can handle failures granularly.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **concurrency** -- paced group runner that keeps batch embedding calls
  under the embedding service's rate limit.
- **vector_math** -- numpy cosine similarity ranking with thresholding.
- **html_text** -- BeautifulSoup visible-text extraction for HTML uploads and URLs.
"""

from talon.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingServiceError,
    ExtractionError,
    GenerationError,
    InvalidInputError,
    LLMError,
    PipelineError,
    RetrievalError,
    SourceFetchError,
    StorageError,
    TalonError,
)
from talon.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DocumentNotFoundError",
    "EmbeddingServiceError",
    "ExtractionError",
    "GenerationError",
    "InvalidInputError",
    "LLMError",
    "PipelineError",
    "RetrievalError",
    "SourceFetchError",
    "StorageError",
    "TalonError",
    "configure_logging",
    "get_logger",
]

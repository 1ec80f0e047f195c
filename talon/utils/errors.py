"""Custom exception hierarchy for TALON.

All application exceptions inherit from :class:`TalonError`, which carries an
optional ``provider_name`` so error handlers can identify which external
service (e.g. "openai", "unstructured", "sqlite") caused the failure.

The hierarchy is organized by pipeline stage:

    TalonError  (base -- catch-all for any TALON error)
    +-- ExtractionError        (no readable content could be recovered)
    +-- EmbeddingServiceError  (embedding upstream failure / timeout / quota)
    +-- RetrievalError         (similarity search backend failure)
    +-- PipelineError          (ingestion orchestration failure)
    +-- LLMError               (generation provider call failure)
    +-- GenerationError        (user-facing chat failure, generic message)
    +-- ConfigurationError     (startup / invalid config)
    +-- StorageError           (knowledge store or file storage failure)
    +-- SourceFetchError       (URL could not be fetched)
    +-- InvalidInputError      (caller supplied unusable input)
    +-- DocumentNotFoundError  (unknown document id)

Ingestion treats extraction and embedding errors as fatal to one Document,
chat treats retrieval errors as "no context" and generation errors as a
failed turn with a safe message.
"""


class TalonError(Exception):
    """Base exception for all TALON errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(TalonError):
    """Raised when no readable text can be recovered from a file."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingServiceError(TalonError):
    """Raised when the embedding service fails, times out, or rejects a request.

    Carries the HTTP-equivalent ``status_code`` and the response ``body``
    when the upstream returned one (``None`` for transport failures).
    """

    def __init__(
        self,
        message: str = "Embedding service call failed",
        provider_name: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code
        self._body = body

    @property
    def status_code(self) -> int | None:
        return self._status_code

    @property
    def body(self) -> str | None:
        return self._body


class PipelineError(TalonError):
    """Raised when document ingestion fails outside extraction or embedding."""

    def __init__(
        self,
        message: str = "Ingestion pipeline failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SourceFetchError(TalonError):
    """Raised when a URL cannot be fetched (timeout, HTTP error status)."""

    def __init__(
        self,
        message: str = "Failed to fetch source",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval / generation errors
# ---------------------------------------------------------------------------

class RetrievalError(TalonError):
    """Raised when a similarity search against the knowledge store fails."""

    def __init__(
        self,
        message: str = "Similarity search failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(TalonError):
    """Raised when a generation provider call fails or returns nothing."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GenerationError(TalonError):
    """Raised to the chat caller when no answer could be generated.

    The message is safe to show to end users; upstream detail stays in logs.
    """

    def __init__(
        self,
        message: str = "I'm unable to respond right now. Please try again in a moment.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Infrastructure / input errors
# ---------------------------------------------------------------------------

class ConfigurationError(TalonError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(TalonError):
    """Raised when the knowledge store or file storage cannot complete a write/read."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidInputError(TalonError):
    """Raised when caller-supplied input is unusable (too large, empty, too short)."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(TalonError):
    """Raised when a document id does not exist in the knowledge store."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

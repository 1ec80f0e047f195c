"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Custom ``base_url`` support lets the same adapter talk to any
OpenAI-compatible embeddings endpoint.
"""

from __future__ import annotations

import openai
import structlog

from talon.config.settings import Settings
from talon.interfaces.embedding_provider import IEmbeddingProvider
from talon.utils.errors import EmbeddingServiceError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  Inputs longer
    than the per-call batch limit are split across several requests.
    Upstream failures are raised as :class:`EmbeddingServiceError` carrying
    the HTTP status and response body when there is one.
    """

    def __init__(
        self,
        settings: Settings,
        model: str | None = None,
        dimension: int | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(timeout, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or model or "text-embedding-3-small"
        self._dimension = dimension or _MODEL_DIMENSIONS.get(self._model, 1536)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts, preserving order."""
        if not texts:
            return []

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                # The API tags each item with its input index.
                ordered = sorted(response.data, key=lambda item: item.index)
                all_embeddings.extend(item.embedding for item in ordered)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            if len(all_embeddings) != len(texts):
                raise EmbeddingServiceError(
                    message=(
                        f"{self._provider_label} returned {len(all_embeddings)} embeddings "
                        f"for {len(texts)} inputs"
                    ),
                    provider_name=self.get_provider_name(),
                )
            return all_embeddings
        except openai.APIStatusError as exc:
            raise EmbeddingServiceError(
                message=f"{self._provider_label} API error: {exc.status_code}",
                provider_name=self.get_provider_name(),
                status_code=exc.status_code,
                body=exc.response.text if exc.response is not None else None,
            ) from exc
        except openai.APITimeoutError as exc:
            raise EmbeddingServiceError(
                message=f"{self._provider_label} request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingServiceError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

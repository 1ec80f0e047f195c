"""Embedding front-end shared by ingestion and retrieval.

Wraps an :class:`~talon.interfaces.embedding_provider.IEmbeddingProvider`
with three behaviours the provider itself does not own:

- **Truncation** -- any input longer than ``max_input_chars`` is cut to that
  length before it is sent.  The embedding service has an input ceiling;
  truncation is silent apart from a debug log line.
- **Dimension check** -- a vector whose length differs from the configured
  dimension is rejected as an :class:`EmbeddingServiceError`, so nothing of
  the wrong size ever reaches the store.
- **Paced batch embedding** -- :meth:`Embedder.embed_paced` embeds texts in
  groups of ``batch_size`` submitted concurrently, pausing
  ``batch_pause_seconds`` between groups.  A failure for one text is logged
  and leaves ``None`` in its slot; siblings are unaffected.
"""

from __future__ import annotations

import structlog

from talon.config.tuning import EmbeddingConfig
from talon.interfaces.embedding_provider import IEmbeddingProvider
from talon.utils.concurrency import paced_gather
from talon.utils.errors import EmbeddingServiceError

logger = structlog.get_logger(logger_name=__name__)


class Embedder:
    """Truncating, dimension-checked, rate-paced embedding client.

    Parameters
    ----------
    provider:
        The embedding service adapter.
    config:
        Input ceiling, expected dimension and batch pacing.
    """

    def __init__(self, provider: IEmbeddingProvider, config: EmbeddingConfig | None = None) -> None:
        self._provider = provider
        self._config = config or EmbeddingConfig()

    @property
    def dimension(self) -> int:
        return self._config.dimension

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    def truncate(self, text: str) -> str:
        """Cut *text* to the configured maximum character length."""
        limit = self._config.max_input_chars
        if len(text) <= limit:
            return text
        logger.debug(
            "embedding_input_truncated",
            original_chars=len(text),
            truncated_chars=limit,
        )
        return text[:limit]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises
        ------
        EmbeddingServiceError
            If the service fails or returns a vector of the wrong dimension.
        """
        vector = await self._provider.embed_single(self.truncate(text))
        self._check_dimension(vector)
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one request; output order matches input order.

        Raises
        ------
        EmbeddingServiceError
            If the service fails, returns the wrong number of vectors, or
            any vector has the wrong dimension.
        """
        if not texts:
            return []
        vectors = await self._provider.embed([self.truncate(t) for t in texts])
        if len(vectors) != len(texts):
            raise EmbeddingServiceError(
                message=f"Expected {len(texts)} embeddings, received {len(vectors)}",
                provider_name=self.provider_name,
            )
        for vector in vectors:
            self._check_dimension(vector)
        return vectors

    async def embed_paced(
        self,
        texts: list[str],
        labels: list[str] | None = None,
    ) -> list[list[float] | None]:
        """Embed each text individually in paced concurrent groups.

        Parameters
        ----------
        texts:
            Texts to embed, e.g. chunk contents in index order.
        labels:
            Optional identifiers logged alongside failures (e.g. chunk
            indices); defaults to the text's position.

        Returns
        -------
        list[list[float] | None]
            One entry per text, ``None`` where embedding failed.
        """
        labels = labels or [str(i) for i in range(len(texts))]

        def _factory(text: str):  # noqa: ANN202
            return lambda: self.embed(text)

        outcomes = await paced_gather(
            [_factory(t) for t in texts],
            group_size=self._config.batch_size,
            pause_seconds=self._config.batch_pause_seconds,
        )

        vectors: list[list[float] | None] = []
        for label, outcome in zip(labels, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "chunk_embedding_failed",
                    chunk=label,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                    status_code=getattr(outcome, "status_code", None),
                )
                vectors.append(None)
            else:
                vectors.append(outcome)
        return vectors

    def _check_dimension(self, vector: list[float]) -> None:
        if len(vector) != self._config.dimension:
            raise EmbeddingServiceError(
                message=(
                    f"Embedding has dimension {len(vector)}, "
                    f"expected {self._config.dimension}"
                ),
                provider_name=self.provider_name,
            )

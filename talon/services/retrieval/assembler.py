"""Retrieval and context assembly for chat grounding.

Given a user query, :class:`RetrievalAssembler`:

1. embeds the query once,
2. searches document chunks (only from ``completed`` documents),
3. searches standalone knowledge entries,
4. renders both result lists into a single labelled text block.

A failure in either search (or in embedding the query) is logged and
treated as zero results for that source, so a partial context is still
usable and the chat turn goes ahead.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable

import structlog

from talon.config.tuning import RetrievalConfig
from talon.interfaces.knowledge_store import IKnowledgeStore
from talon.models.rag import AssembledContext, RetrievalResult, RetrievalStats
from talon.services.ingestion.embedder import Embedder
from talon.utils.errors import EmbeddingServiceError, RetrievalError

logger = structlog.get_logger(logger_name=__name__)

_CHUNK_HEADER = "Relevant document excerpts:"
_KNOWLEDGE_HEADER = "Relevant knowledge base entries:"


def render_context(
    chunk_results: list[RetrievalResult],
    knowledge_results: list[RetrievalResult],
) -> str:
    """Render search hits as a context block.

    Chunk hits are numbered ``[1]``, ``[2]`` ... in rank order; knowledge hits
    are numbered ``[KB1]``, ``[KB2]`` ... and prefixed with their title.  A
    section with no hits is omitted entirely, so no hits at all yields ``""``.
    """
    sections: list[str] = []
    if chunk_results:
        lines = [f"[{i}] {r.content}" for i, r in enumerate(chunk_results, start=1)]
        sections.append(_CHUNK_HEADER + "\n\n" + "\n\n".join(lines))
    if knowledge_results:
        lines = [
            f"[KB{i}] {r.title or 'Untitled'}: {r.content}"
            for i, r in enumerate(knowledge_results, start=1)
        ]
        sections.append(_KNOWLEDGE_HEADER + "\n\n" + "\n\n".join(lines))
    return "\n\n".join(sections)


class RetrievalAssembler:
    """Embeds a query, searches both sources, and renders the context block.

    Parameters
    ----------
    config:
        Per-source similarity thresholds and result limits.
    embedder:
        Used once per query.
    store:
        Knowledge store answering similarity searches.
    """

    def __init__(
        self,
        config: RetrievalConfig | None,
        embedder: Embedder,
        store: IKnowledgeStore,
    ) -> None:
        self._config = config or RetrievalConfig()
        self._embedder = embedder
        self._store = store

    async def assemble(self, query: str) -> AssembledContext:
        """Build the grounding context for *query*.

        Never raises for embedding or search failures; those yield an
        empty (or partial) context instead.
        """
        if not query or not query.strip():
            return AssembledContext()

        try:
            query_vector = await self._embedder.embed(query)
        except EmbeddingServiceError as exc:
            logger.warning(
                "query_embedding_failed",
                query_length=len(query),
                error=str(exc),
                status_code=exc.status_code,
            )
            return AssembledContext()

        cfg = self._config
        chunk_results, knowledge_results = await asyncio.gather(
            self._search(
                "chunks",
                self._store.search_chunks(query_vector, cfg.chunk_threshold, cfg.chunk_top_k),
                query,
            ),
            self._search(
                "knowledge",
                self._store.search_knowledge(
                    query_vector, cfg.knowledge_threshold, cfg.knowledge_top_k
                ),
                query,
            ),
        )

        stats = RetrievalStats(
            document_chunks=len(chunk_results),
            knowledge_entries=len(knowledge_results),
        )
        logger.info(
            "context_assembled",
            query_length=len(query),
            document_chunks=stats.document_chunks,
            knowledge_entries=stats.knowledge_entries,
        )
        return AssembledContext(
            text=render_context(chunk_results, knowledge_results),
            chunk_results=chunk_results,
            knowledge_results=knowledge_results,
            stats=stats,
        )

    @staticmethod
    async def _search(
        source: str,
        search: Awaitable[list[RetrievalResult]],
        query: str,
    ) -> list[RetrievalResult]:
        try:
            return list(await search)
        except RetrievalError as exc:
            logger.warning(
                "retrieval_search_failed",
                source=source,
                query_length=len(query),
                error=str(exc),
            )
            return []

"""Unit tests for context rendering and the RetrievalAssembler."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from talon.config.tuning import RetrievalConfig
from talon.interfaces.knowledge_store import IKnowledgeStore
from talon.models.rag import RetrievalResult, SourceKind
from talon.services.ingestion.embedder import Embedder
from talon.services.retrieval.assembler import RetrievalAssembler, render_context
from talon.utils.errors import RetrievalError
from tests.conftest import KeywordEmbeddingProvider


def _chunk_hit(content: str, score: float = 0.9) -> RetrievalResult:
    return RetrievalResult(
        source_kind=SourceKind.CHUNK,
        content=content,
        similarity_score=score,
        origin_id=f"chunk-{content}",
        document_id="doc-1",
    )


def _kb_hit(title: str, content: str, score: float = 0.9) -> RetrievalResult:
    return RetrievalResult(
        source_kind=SourceKind.KNOWLEDGE,
        content=content,
        similarity_score=score,
        origin_id=f"kb-{title}",
        title=title,
    )


def _mock_store(chunks=None, knowledge=None) -> MagicMock:
    store = MagicMock(spec=IKnowledgeStore)
    store.search_chunks = AsyncMock(return_value=chunks or [])
    store.search_knowledge = AsyncMock(return_value=knowledge or [])
    return store


class TestRenderContext:
    def test_both_sections(self) -> None:
        text = render_context(
            [_chunk_hit("Ramp limit is 15 degrees."), _chunk_hit("Chock all wheels.")],
            [_kb_hit("Tie-down", "Four chains per axle.")],
        )
        assert text == (
            "Relevant document excerpts:\n\n"
            "[1] Ramp limit is 15 degrees.\n\n"
            "[2] Chock all wheels.\n\n"
            "Relevant knowledge base entries:\n\n"
            "[KB1] Tie-down: Four chains per axle."
        )

    def test_knowledge_only(self) -> None:
        text = render_context([], [_kb_hit("A", "x"), _kb_hit("B", "y")])
        assert text.startswith("Relevant knowledge base entries:")
        assert "[KB2] B: y" in text
        assert "document excerpts" not in text

    def test_no_hits_renders_nothing(self) -> None:
        assert render_context([], []) == ""


class TestRetrievalAssembler:
    @pytest.mark.asyncio
    async def test_passes_per_source_limits(self, embedder: Embedder) -> None:
        store = _mock_store(chunks=[_chunk_hit("c")], knowledge=[_kb_hit("t", "k")])
        config = RetrievalConfig(
            chunk_threshold=0.6, chunk_top_k=4, knowledge_threshold=0.8, knowledge_top_k=2
        )
        assembler = RetrievalAssembler(config, embedder, store)

        context = await assembler.assemble("vehicle ramp")

        store.search_chunks.assert_awaited_once()
        assert store.search_chunks.await_args.args[1:] == (0.6, 4)
        assert store.search_knowledge.await_args.args[1:] == (0.8, 2)
        assert context.stats.document_chunks == 1
        assert context.stats.knowledge_entries == 1
        assert "[1] c" in context.text

    @pytest.mark.asyncio
    async def test_query_is_embedded_once(self, embedding_provider: KeywordEmbeddingProvider, embedder: Embedder) -> None:
        assembler = RetrievalAssembler(None, embedder, _mock_store())
        await assembler.assemble("axle load")
        assert embedding_provider.calls == ["axle load"]

    @pytest.mark.asyncio
    async def test_blank_query_returns_empty_context(self, embedder: Embedder) -> None:
        store = _mock_store()
        context = await RetrievalAssembler(None, embedder, store).assemble("   ")

        assert context.is_empty
        store.search_chunks.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embedding_failure_returns_empty_context(self, talon_config) -> None:
        failing = Embedder(KeywordEmbeddingProvider(fail_on=("bridge",)), talon_config.embedding)
        store = _mock_store(chunks=[_chunk_hit("c")])

        context = await RetrievalAssembler(None, failing, store).assemble("bridge class")

        assert context.is_empty
        assert context.stats.document_chunks == 0
        store.search_chunks.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_failed_search_keeps_the_other(self, embedder: Embedder) -> None:
        store = _mock_store(knowledge=[_kb_hit("Convoys", "Keep 50 m spacing.")])
        store.search_chunks = AsyncMock(side_effect=RetrievalError(message="db locked"))

        context = await RetrievalAssembler(None, embedder, store).assemble("convoy")

        assert context.stats.document_chunks == 0
        assert context.stats.knowledge_entries == 1
        assert context.text.startswith("Relevant knowledge base entries:")

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, embedder: Embedder) -> None:
        store = _mock_store()
        store.search_knowledge = AsyncMock(side_effect=RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            await RetrievalAssembler(None, embedder, store).assemble("convoy")

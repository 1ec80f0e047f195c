"""Unit tests for SQLiteKnowledgeStore -- persistence and similarity search."""

from __future__ import annotations

import uuid
from pathlib import Path

import aiosqlite
import numpy as np
import pytest

from talon.models.documents import Chunk, ChunkMetadata, Document, DocumentStatus
from talon.models.knowledge import KnowledgeEntry, SourceType
from talon.models.rag import SourceKind
from talon.providers.knowledge_store.sqlite_knowledge_store import SQLiteKnowledgeStore
from talon.utils.errors import DocumentNotFoundError, RetrievalError, StorageError
from tests.conftest import TEST_DIMENSION, keyword_vector

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _document(owner: str = "u1", status: DocumentStatus = DocumentStatus.PENDING) -> Document:
    doc_id = str(uuid.uuid4())
    return Document(
        id=doc_id,
        owner=owner,
        filename="manual.txt",
        size=42,
        mime_type="text/plain",
        status=status,
        storage_path=f"{owner}/{doc_id}_manual.txt",
    )


def _chunk(document_id: str, index: int, content: str, embed: bool = True) -> Chunk:
    return Chunk(
        id=str(uuid.uuid4()),
        document_id=document_id,
        index=index,
        content=content,
        token_estimate=len(content) // 4,
        embedding=keyword_vector(content) if embed else None,
        metadata=ChunkMetadata(start_offset=index * 10, end_offset=index * 10 + len(content)),
    )


def _entry(title: str, content: str, embed: bool = True, owner: str = "u1") -> KnowledgeEntry:
    return KnowledgeEntry(
        id=str(uuid.uuid4()),
        owner=owner,
        title=title,
        description=f"Manual entry: {title}",
        source_type=SourceType.MANUAL,
        content=content,
        embedding=keyword_vector(content) if embed else None,
        tags=frozenset({"cargo", "ramp"}),
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    @pytest.mark.asyncio
    async def test_initialize_creates_parent_directory(self, tmp_path: Path) -> None:
        store = SQLiteKnowledgeStore(db_path=tmp_path / "nested" / "dir" / "t.db", dimension=4)
        await store.initialize()
        assert (tmp_path / "nested" / "dir" / "t.db").exists()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        await knowledge_store.initialize()
        assert await knowledge_store.list_documents() == []

    @pytest.mark.asyncio
    async def test_create_and_get(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)

        loaded = await knowledge_store.get_document(doc.id)

        assert loaded == doc

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        assert await knowledge_store.get_document("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_id_raises_storage_error(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)
        with pytest.raises(StorageError):
            await knowledge_store.create_document(doc)

    @pytest.mark.asyncio
    async def test_list_filters_by_owner(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        await knowledge_store.create_document(_document(owner="alice"))
        await knowledge_store.create_document(_document(owner="alice"))
        await knowledge_store.create_document(_document(owner="bob"))

        assert len(await knowledge_store.list_documents()) == 3
        assert len(await knowledge_store.list_documents(owner="alice")) == 2
        assert await knowledge_store.list_documents(owner="carol") == []

    @pytest.mark.asyncio
    async def test_update_status(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)

        await knowledge_store.update_document_status(doc.id, DocumentStatus.PROCESSING)

        loaded = await knowledge_store.get_document(doc.id)
        assert loaded is not None
        assert loaded.status == DocumentStatus.PROCESSING
        assert loaded.updated_at >= doc.updated_at

    @pytest.mark.asyncio
    async def test_update_status_of_missing_document(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        with pytest.raises(DocumentNotFoundError):
            await knowledge_store.update_document_status("missing", DocumentStatus.FAILED)

    @pytest.mark.asyncio
    async def test_delete_cascades_to_chunks(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)
        await knowledge_store.insert_chunks([_chunk(doc.id, 0, "vehicle"), _chunk(doc.id, 1, "ramp")])

        assert await knowledge_store.delete_document(doc.id) is True
        assert await knowledge_store.get_document(doc.id) is None
        assert await knowledge_store.list_chunks(doc.id) == []
        assert await knowledge_store.delete_document(doc.id) is False

    @pytest.mark.asyncio
    async def test_reset_stale_processing(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        stuck = _document(status=DocumentStatus.PROCESSING)
        done = _document(status=DocumentStatus.COMPLETED)
        await knowledge_store.create_document(stuck)
        await knowledge_store.create_document(done)

        assert await knowledge_store.reset_stale_processing() == 1

        stuck_after = await knowledge_store.get_document(stuck.id)
        done_after = await knowledge_store.get_document(done.id)
        assert stuck_after is not None and stuck_after.status == DocumentStatus.FAILED
        assert done_after is not None and done_after.status == DocumentStatus.COMPLETED


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------


class TestChunks:
    @pytest.mark.asyncio
    async def test_insert_and_list_in_index_order(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)
        chunks = [_chunk(doc.id, 1, "axle"), _chunk(doc.id, 0, "vehicle", embed=False)]

        assert await knowledge_store.insert_chunks(chunks) == 2

        loaded = await knowledge_store.list_chunks(doc.id)
        assert [c.index for c in loaded] == [0, 1]
        assert loaded[0].embedding is None
        assert loaded[1].embedding == pytest.approx(keyword_vector("axle"))
        assert loaded[1].metadata == chunks[0].metadata

    @pytest.mark.asyncio
    async def test_insert_empty_list(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        assert await knowledge_store.insert_chunks([]) == 0

    @pytest.mark.asyncio
    async def test_duplicate_index_rejected(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)
        await knowledge_store.insert_chunks([_chunk(doc.id, 0, "vehicle")])

        with pytest.raises(StorageError):
            await knowledge_store.insert_chunks([_chunk(doc.id, 0, "ramp")])

    @pytest.mark.asyncio
    async def test_chunk_for_missing_document_rejected(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        with pytest.raises(StorageError):
            await knowledge_store.insert_chunks([_chunk("no-such-doc", 0, "vehicle")])

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)
        bad = _chunk(doc.id, 0, "vehicle").model_copy(update={"embedding": [1.0, 0.0]})

        with pytest.raises(StorageError, match="dimension 2"):
            await knowledge_store.insert_chunks([bad])
        assert await knowledge_store.list_chunks(doc.id) == []

    @pytest.mark.asyncio
    async def test_delete_chunks_returns_count(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)
        await knowledge_store.insert_chunks([_chunk(doc.id, i, "load") for i in range(3)])

        assert await knowledge_store.delete_chunks(doc.id) == 3
        assert await knowledge_store.delete_chunks(doc.id) == 0


class TestChunkSearch:
    @pytest.mark.asyncio
    async def test_only_completed_documents_are_searched(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document()
        await knowledge_store.create_document(doc)
        await knowledge_store.insert_chunks([_chunk(doc.id, 0, "vehicle vehicle")])
        query = keyword_vector("vehicle")

        assert await knowledge_store.search_chunks(query, 0.5, 5) == []

        await knowledge_store.update_document_status(doc.id, DocumentStatus.COMPLETED)
        results = await knowledge_store.search_chunks(query, 0.5, 5)

        assert len(results) == 1
        assert results[0].source_kind == SourceKind.CHUNK
        assert results[0].document_id == doc.id
        assert results[0].similarity_score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_ranking_threshold_and_null_embeddings(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document(status=DocumentStatus.COMPLETED)
        await knowledge_store.create_document(doc)
        await knowledge_store.insert_chunks(
            [
                _chunk(doc.id, 0, "bridge"),
                _chunk(doc.id, 1, "convoy ramp"),
                _chunk(doc.id, 2, "convoy", embed=False),
                _chunk(doc.id, 3, "convoy"),
            ]
        )

        results = await knowledge_store.search_chunks(keyword_vector("convoy"), 0.5, 5)

        # Exact match first, the two-keyword chunk second (similarity ~0.707).
        assert [r.content for r in results] == ["convoy", "convoy ramp"]
        assert results[0].similarity_score > results[1].similarity_score

    @pytest.mark.asyncio
    async def test_top_k_limits_results(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        doc = _document(status=DocumentStatus.COMPLETED)
        await knowledge_store.create_document(doc)
        await knowledge_store.insert_chunks([_chunk(doc.id, i, "load") for i in range(4)])

        results = await knowledge_store.search_chunks(keyword_vector("load"), 0.0, 2)

        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_inconsistent_stored_vectors_raise_retrieval_error(
        self, knowledge_store: SQLiteKnowledgeStore, tmp_path: Path
    ) -> None:
        doc = _document(status=DocumentStatus.COMPLETED)
        await knowledge_store.create_document(doc)
        await knowledge_store.insert_chunks([_chunk(doc.id, 0, "load"), _chunk(doc.id, 1, "ramp")])
        async with aiosqlite.connect(str(tmp_path / "talon.db")) as db:
            await db.execute(
                "UPDATE document_chunks SET embedding = ? WHERE chunk_index = 1",
                (np.ones(3, dtype="<f4").tobytes(),),
            )
            await db.commit()

        with pytest.raises(RetrievalError, match="inconsistent"):
            await knowledge_store.search_chunks(keyword_vector("load"), 0.0, 5)

    @pytest.mark.asyncio
    async def test_query_dimension_mismatch(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        with pytest.raises(RetrievalError):
            await knowledge_store.search_chunks([1.0, 0.0], 0.5, 5)


# ---------------------------------------------------------------------------
# Knowledge entries
# ---------------------------------------------------------------------------


class TestKnowledgeEntries:
    @pytest.mark.asyncio
    async def test_insert_and_list_round_trip(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        entry = _entry("Ramp angles", "ramp angle limits")
        await knowledge_store.insert_knowledge_entry(entry)

        [loaded] = await knowledge_store.list_knowledge_entries(owner="u1")

        assert loaded.title == "Ramp angles"
        assert loaded.tags == frozenset({"cargo", "ramp"})
        assert loaded.source_type == SourceType.MANUAL
        assert loaded.embedding == pytest.approx(entry.embedding)
        assert await knowledge_store.list_knowledge_entries(owner="other") == []

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        entry = _entry("Bad", "bad").model_copy(update={"embedding": [0.0] * (TEST_DIMENSION + 1)})
        with pytest.raises(StorageError):
            await knowledge_store.insert_knowledge_entry(entry)

    @pytest.mark.asyncio
    async def test_search_skips_entries_without_embedding(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        await knowledge_store.insert_knowledge_entry(_entry("No vector", "munition", embed=False))
        await knowledge_store.insert_knowledge_entry(_entry("Munitions", "munition storage"))

        results = await knowledge_store.search_knowledge(keyword_vector("munition"), 0.5, 3)

        assert [r.title for r in results] == ["Munitions"]
        assert results[0].source_kind == SourceKind.KNOWLEDGE

    @pytest.mark.asyncio
    async def test_delete_entry(self, knowledge_store: SQLiteKnowledgeStore) -> None:
        entry = _entry("Temp", "axle")
        await knowledge_store.insert_knowledge_entry(entry)

        assert await knowledge_store.delete_knowledge_entry(entry.id) is True
        assert await knowledge_store.delete_knowledge_entry(entry.id) is False
        assert await knowledge_store.list_knowledge_entries() == []

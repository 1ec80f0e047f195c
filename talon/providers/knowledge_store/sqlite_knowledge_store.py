"""SQLite-backed knowledge store.

Persists documents, chunks and knowledge entries in a local SQLite database
(default ``data/talon.db``) through ``aiosqlite``.  Embeddings are stored as
little-endian float32 blobs; similarity search loads candidate vectors and
ranks them with numpy (see :mod:`talon.utils.vector_math`).

Chunks reference their document with ``ON DELETE CASCADE`` and are unique
per ``(document_id, chunk_index)``.  Chunk search joins on the parent
document and only considers ``completed`` documents.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Sequence

import aiosqlite
import numpy as np
import structlog

from talon.interfaces.knowledge_store import IKnowledgeStore
from talon.models.documents import Chunk, ChunkMetadata, Document, DocumentStatus, utc_now
from talon.models.knowledge import KnowledgeEntry, SourceType
from talon.models.rag import RetrievalResult, SourceKind
from talon.utils.errors import DocumentNotFoundError, RetrievalError, StorageError
from talon.utils.vector_math import rank_by_similarity

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/talon.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id            TEXT    PRIMARY KEY,
    owner         TEXT    NOT NULL,
    filename      TEXT    NOT NULL,
    size          INTEGER NOT NULL,
    mime_type     TEXT    NOT NULL,
    status        TEXT    NOT NULL DEFAULT 'pending'
                  CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    storage_path  TEXT    NOT NULL,
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS document_chunks (
    id              TEXT    PRIMARY KEY,
    document_id     TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index     INTEGER NOT NULL,
    content         TEXT    NOT NULL,
    token_estimate  INTEGER NOT NULL DEFAULT 0,
    embedding       BLOB,
    start_offset    INTEGER NOT NULL,
    end_offset      INTEGER NOT NULL,
    UNIQUE(document_id, chunk_index)
);
""",
    """\
CREATE TABLE IF NOT EXISTS knowledge_entries (
    id                TEXT PRIMARY KEY,
    owner             TEXT NOT NULL,
    title             TEXT NOT NULL,
    description       TEXT NOT NULL DEFAULT '',
    source_type       TEXT NOT NULL CHECK (source_type IN ('document', 'url', 'manual')),
    source_reference  TEXT,
    content           TEXT NOT NULL,
    embedding         BLOB,
    tags              TEXT NOT NULL DEFAULT '[]',
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON document_chunks(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_knowledge_owner ON knowledge_entries(owner);",
]

_DOCUMENT_COLUMNS = "id, owner, filename, size, mime_type, status, storage_path, created_at, updated_at"

_SEARCH_CHUNKS_SQL = """\
SELECT c.id, c.document_id, c.content, c.embedding
FROM document_chunks AS c
JOIN documents AS d ON d.id = c.document_id
WHERE d.status = 'completed' AND c.embedding IS NOT NULL
ORDER BY d.created_at, c.document_id, c.chunk_index;
"""

_SEARCH_KNOWLEDGE_SQL = """\
SELECT id, title, content, embedding
FROM knowledge_entries
WHERE embedding IS NOT NULL
ORDER BY created_at, id;
"""


def _encode_vector(vector: Sequence[float] | None) -> bytes | None:
    if vector is None:
        return None
    return np.asarray(vector, dtype="<f4").tobytes()


def _decode_vector(blob: bytes | None) -> list[float] | None:
    if blob is None:
        return None
    return np.frombuffer(blob, dtype="<f4").astype(float).tolist()


def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        id=row["id"],
        owner=row["owner"],
        filename=row["filename"],
        size=row["size"],
        mime_type=row["mime_type"],
        status=DocumentStatus(row["status"]),
        storage_path=row["storage_path"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_entry(row: aiosqlite.Row) -> KnowledgeEntry:
    return KnowledgeEntry(
        id=row["id"],
        owner=row["owner"],
        title=row["title"],
        description=row["description"],
        source_type=SourceType(row["source_type"]),
        source_reference=row["source_reference"],
        content=row["content"],
        embedding=_decode_vector(row["embedding"]),
        tags=frozenset(json.loads(row["tags"])),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class SQLiteKnowledgeStore(IKnowledgeStore):
    """SQLite persistence with numpy cosine similarity search.

    Parameters
    ----------
    db_path:
        Database file location; parent directories are created on
        :meth:`initialize`.
    dimension:
        Required length of every stored embedding.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, dimension: int = 1536) -> None:
        self._db_path = Path(db_path)
        self._dimension = dimension

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON;")
            yield db

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("knowledge_store_initialized", path=str(self._db_path), dimension=self._dimension)

    def _check_dimension(self, vector: Sequence[float] | None, label: str) -> None:
        if vector is not None and len(vector) != self._dimension:
            raise StorageError(
                message=(
                    f"Embedding for {label} has dimension {len(vector)}, "
                    f"expected {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, document: Document) -> Document:
        try:
            async with self._connect() as db:
                await db.execute(
                    f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        document.id,
                        document.owner,
                        document.filename,
                        document.size,
                        document.mime_type,
                        document.status.value,
                        document.storage_path,
                        document.created_at.isoformat(),
                        document.updated_at.isoformat(),
                    ),
                )
                await db.commit()
        except sqlite3.Error as exc:
            raise StorageError(
                message=f"Failed to create document record: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("document_created", document_id=document.id, filename=document.filename)
        return document

    async def get_document(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def list_documents(self, owner: str | None = None) -> list[Document]:
        async with self._connect() as db:
            if owner is not None:
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE owner = ? "
                    "ORDER BY created_at DESC",
                    (owner,),
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents ORDER BY created_at DESC"
                )
            rows = await cursor.fetchall()
        return [_row_to_document(r) for r in rows]

    async def update_document_status(self, document_id: str, status: DocumentStatus) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE documents SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, utc_now().isoformat(), document_id),
            )
            await db.commit()
            updated = cursor.rowcount
        if not updated:
            raise DocumentNotFoundError(
                message=f"Document not found: {document_id}",
                provider_name=self.get_provider_name(),
            )
        logger.info("document_status_updated", document_id=document_id, status=status.value)

    async def delete_document(self, document_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
            deleted = cursor.rowcount
        logger.info("document_deleted", document_id=document_id, found=bool(deleted))
        return bool(deleted)

    async def reset_stale_processing(self) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE documents SET status = 'failed', updated_at = ? WHERE status = 'processing'",
                (utc_now().isoformat(),),
            )
            await db.commit()
            count = cursor.rowcount
        logger.info("stale_processing_reset", documents=count)
        return count

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def insert_chunks(self, chunks: list[Chunk]) -> int:
        if not chunks:
            return 0
        for chunk in chunks:
            self._check_dimension(chunk.embedding, f"chunk {chunk.document_id}#{chunk.index}")

        rows = [
            (
                c.id,
                c.document_id,
                c.index,
                c.content,
                c.token_estimate,
                _encode_vector(c.embedding),
                c.metadata.start_offset,
                c.metadata.end_offset,
            )
            for c in chunks
        ]
        try:
            async with self._connect() as db:
                await db.executemany(
                    "INSERT INTO document_chunks (id, document_id, chunk_index, content, "
                    "token_estimate, embedding, start_offset, end_offset) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
                await db.commit()
        except sqlite3.Error as exc:
            raise StorageError(
                message=f"Failed to insert chunks: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(rows)

    async def delete_chunks(self, document_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document_id,)
            )
            await db.commit()
            return cursor.rowcount

    async def list_chunks(self, document_id: str) -> list[Chunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, document_id, chunk_index, content, token_estimate, embedding, "
                "start_offset, end_offset FROM document_chunks WHERE document_id = ? "
                "ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [
            Chunk(
                id=r["id"],
                document_id=r["document_id"],
                index=r["chunk_index"],
                content=r["content"],
                token_estimate=r["token_estimate"],
                embedding=_decode_vector(r["embedding"]),
                metadata=ChunkMetadata(start_offset=r["start_offset"], end_offset=r["end_offset"]),
            )
            for r in rows
        ]

    async def search_chunks(
        self,
        query_vector: list[float],
        threshold: float,
        top_k: int,
    ) -> list[RetrievalResult]:
        rows = await self._fetch_candidates(_SEARCH_CHUNKS_SQL)
        ranked = self._rank(query_vector, rows, threshold, top_k)
        return [
            RetrievalResult(
                source_kind=SourceKind.CHUNK,
                content=rows[idx]["content"],
                similarity_score=similarity,
                origin_id=rows[idx]["id"],
                document_id=rows[idx]["document_id"],
            )
            for idx, similarity in ranked
        ]

    # ------------------------------------------------------------------
    # Knowledge entries
    # ------------------------------------------------------------------

    async def insert_knowledge_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        self._check_dimension(entry.embedding, f"knowledge entry {entry.id}")
        try:
            async with self._connect() as db:
                await db.execute(
                    "INSERT INTO knowledge_entries (id, owner, title, description, source_type, "
                    "source_reference, content, embedding, tags, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        entry.id,
                        entry.owner,
                        entry.title,
                        entry.description,
                        entry.source_type.value,
                        entry.source_reference,
                        entry.content,
                        _encode_vector(entry.embedding),
                        json.dumps(sorted(entry.tags)),
                        entry.created_at.isoformat(),
                        entry.updated_at.isoformat(),
                    ),
                )
                await db.commit()
        except sqlite3.Error as exc:
            raise StorageError(
                message=f"Failed to insert knowledge entry: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "knowledge_entry_created",
            entry_id=entry.id,
            source_type=entry.source_type.value,
        )
        return entry

    async def list_knowledge_entries(self, owner: str | None = None) -> list[KnowledgeEntry]:
        columns = (
            "id, owner, title, description, source_type, source_reference, content, "
            "embedding, tags, created_at, updated_at"
        )
        async with self._connect() as db:
            if owner is not None:
                cursor = await db.execute(
                    f"SELECT {columns} FROM knowledge_entries WHERE owner = ? "
                    "ORDER BY created_at DESC",
                    (owner,),
                )
            else:
                cursor = await db.execute(
                    f"SELECT {columns} FROM knowledge_entries ORDER BY created_at DESC"
                )
            rows = await cursor.fetchall()
        return [_row_to_entry(r) for r in rows]

    async def delete_knowledge_entry(self, entry_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM knowledge_entries WHERE id = ?", (entry_id,))
            await db.commit()
            return bool(cursor.rowcount)

    async def search_knowledge(
        self,
        query_vector: list[float],
        threshold: float,
        top_k: int,
    ) -> list[RetrievalResult]:
        rows = await self._fetch_candidates(_SEARCH_KNOWLEDGE_SQL)
        ranked = self._rank(query_vector, rows, threshold, top_k)
        return [
            RetrievalResult(
                source_kind=SourceKind.KNOWLEDGE,
                content=rows[idx]["content"],
                similarity_score=similarity,
                origin_id=rows[idx]["id"],
                title=rows[idx]["title"],
            )
            for idx, similarity in ranked
        ]

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Search helpers
    # ------------------------------------------------------------------

    async def _fetch_candidates(self, sql: str) -> list[aiosqlite.Row]:
        try:
            async with self._connect() as db:
                cursor = await db.execute(sql)
                return list(await cursor.fetchall())
        except sqlite3.Error as exc:
            raise RetrievalError(
                message=f"Similarity search query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _rank(
        self,
        query_vector: list[float],
        rows: list[aiosqlite.Row],
        threshold: float,
        top_k: int,
    ) -> list[tuple[int, float]]:
        if len(query_vector) != self._dimension:
            raise RetrievalError(
                message=(
                    f"Query embedding has dimension {len(query_vector)}, "
                    f"expected {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )
        vectors = [np.frombuffer(r["embedding"], dtype="<f4") for r in rows]
        try:
            return rank_by_similarity(query_vector, vectors, threshold, top_k)
        except ValueError as exc:
            # Stored vectors of mixed length cannot be stacked.
            raise RetrievalError(
                message=f"Stored embeddings are inconsistent: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

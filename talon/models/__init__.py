"""TALON domain models: re-exports all public model classes.

    - documents.py  -- uploaded documents, chunks, chunker spans
    - knowledge.py  -- standalone knowledge entries
    - rag.py        -- retrieval hits, assembled context, ingestion results
    - chat.py       -- conversation turns and replies
"""

from __future__ import annotations

from talon.models.chat import ChatReply, ChatRole, ChatTurn
from talon.models.documents import (
    Chunk,
    ChunkMetadata,
    Document,
    DocumentStatus,
    TextSpan,
    estimate_tokens,
    utc_now,
)
from talon.models.knowledge import KnowledgeEntry, SourceType
from talon.models.rag import (
    AssembledContext,
    IngestionResult,
    RetrievalResult,
    RetrievalStats,
    SourceKind,
)

__all__ = [
    "AssembledContext",
    "ChatReply",
    "ChatRole",
    "ChatTurn",
    "Chunk",
    "ChunkMetadata",
    "Document",
    "DocumentStatus",
    "IngestionResult",
    "KnowledgeEntry",
    "RetrievalResult",
    "RetrievalStats",
    "SourceKind",
    "SourceType",
    "TextSpan",
    "estimate_tokens",
    "utc_now",
]

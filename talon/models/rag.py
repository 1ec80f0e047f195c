"""Retrieval and ingestion result models.

These are transient: they describe search hits, the assembled context
handed to the chat orchestrator, and per-document ingestion outcomes.
None of them is persisted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from talon.models.documents import DocumentStatus


class SourceKind(str, Enum):
    """Which store a retrieval hit came from."""

    CHUNK = "chunk"
    KNOWLEDGE = "knowledge"


class RetrievalResult(BaseModel):
    """A single similarity-search hit."""

    model_config = ConfigDict(frozen=True)

    source_kind: SourceKind
    content: str
    similarity_score: float = Field(description="1 - cosine distance to the query.")
    origin_id: str = Field(description="Chunk id or knowledge entry id.")
    title: str | None = Field(default=None, description="Knowledge entry title; None for chunks.")
    document_id: str | None = Field(default=None, description="Parent document for chunk hits.")


class RetrievalStats(BaseModel):
    """How many items from each source made it into the context."""

    model_config = ConfigDict(frozen=True)

    document_chunks: int = Field(default=0, ge=0)
    knowledge_entries: int = Field(default=0, ge=0)


class AssembledContext(BaseModel):
    """Rendered context block plus the hits it was built from."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    chunk_results: list[RetrievalResult] = Field(default_factory=list)
    knowledge_results: list[RetrievalResult] = Field(default_factory=list)
    stats: RetrievalStats = Field(default_factory=RetrievalStats)

    @property
    def is_empty(self) -> bool:
        return not self.text


class IngestionResult(BaseModel):
    """Summary of one document ingestion run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    status: DocumentStatus
    chunks_created: int = Field(default=0, ge=0)
    chunks_embedded: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")
    error: str | None = None

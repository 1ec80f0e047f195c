"""Pydantic request/response schemas for the TALON API.

Request schemas end with ``Request``, response schemas with ``Response``.
Field constraints double as OpenAPI documentation at ``/docs``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from talon.models.chat import ChatRole
from talon.models.documents import Document, DocumentStatus
from talon.models.knowledge import KnowledgeEntry, SourceType
from talon.models.rag import IngestionResult


class DocumentResponse(BaseModel):
    """Public view of an uploaded document."""

    id: str
    filename: str
    size: int
    mime_type: str
    status: DocumentStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> DocumentResponse:
        return cls(
            id=document.id,
            filename=document.filename,
            size=document.size,
            mime_type=document.mime_type,
            status=document.status,
            created_at=document.created_at,
            updated_at=document.updated_at,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse] = Field(default_factory=list)
    total: int = 0


class UploadResponse(BaseModel):
    """Returned after an upload is registered."""

    document: DocumentResponse
    processing_scheduled: bool = Field(
        description="True when processing was queued as a background task.",
    )


class ProcessResponse(BaseModel):
    """Outcome of a synchronous processing run."""

    document_id: str
    status: DocumentStatus
    chunks_created: int
    chunks_embedded: int
    total_tokens: int
    ingestion_time: float
    error: str | None = None

    @classmethod
    def from_result(cls, result: IngestionResult) -> ProcessResponse:
        return cls(**result.model_dump())


class DeleteResponse(BaseModel):
    deleted: bool


class AddUrlRequest(BaseModel):
    """A web page to fetch and store as a knowledge entry."""

    url: str = Field(..., min_length=1, max_length=2048)


class AddManualKnowledgeRequest(BaseModel):
    """A hand-written note to store as a knowledge entry."""

    title: str = Field(..., max_length=500)
    content: str = Field(..., max_length=100_000)
    tags: list[str] = Field(default_factory=list)


class KnowledgeEntryResponse(BaseModel):
    """Public view of a knowledge entry (embedding omitted)."""

    id: str
    title: str
    description: str
    source_type: SourceType
    source_reference: str | None = None
    content_length: int
    tags: list[str] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: KnowledgeEntry) -> KnowledgeEntryResponse:
        return cls(
            id=entry.id,
            title=entry.title,
            description=entry.description,
            source_type=entry.source_type,
            source_reference=entry.source_reference,
            content_length=len(entry.content),
            tags=sorted(entry.tags),
            created_at=entry.created_at,
        )


class KnowledgeListResponse(BaseModel):
    entries: list[KnowledgeEntryResponse] = Field(default_factory=list)
    total: int = 0


class ChatHistoryItem(BaseModel):
    """One prior conversation turn sent by the client."""

    role: ChatRole
    content: str = Field(..., max_length=20_000)


class ChatRequest(BaseModel):
    """A new user message plus the conversation so far."""

    message: str = Field(..., min_length=1, max_length=8000)
    conversation_history: list[ChatHistoryItem] = Field(default_factory=list)


class ContextsUsed(BaseModel):
    document_chunks: int = 0
    knowledge_entries: int = 0


class ChatResponse(BaseModel):
    """The assistant's reply and how much retrieved context grounded it."""

    response: str
    contexts_used: ContextsUsed


class ResetStaleResponse(BaseModel):
    reset: int = Field(description="Number of documents moved from processing to failed.")


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None

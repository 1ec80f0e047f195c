"""Document and chunk models for the ingestion write path.

A :class:`Document` is created on upload and only changes through the
ingestion pipeline's status transitions.  Its :class:`Chunk` rows are created
by the pipeline, are never patched afterwards, and are deleted together with
the parent Document.  All models use frozen config.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def estimate_tokens(text: str) -> int:
    """Rough token estimate: about four characters per token."""
    return math.ceil(len(text) / 4)


class DocumentStatus(str, Enum):
    """Processing state of an uploaded document.

    Transitions: ``pending -> processing -> completed | failed``.  A failed
    document can be processed again, which restarts at ``processing``.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Document(BaseModel):
    """An uploaded file and its processing status."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID) of the document.")
    owner: str = Field(description="Identifier of the uploading user.")
    filename: str = Field(description="Original file name including extension.")
    size: int = Field(ge=0, description="File size in bytes.")
    mime_type: str = Field(default="application/octet-stream")
    status: DocumentStatus = DocumentStatus.PENDING
    storage_path: str = Field(description="Location of the raw bytes in file storage.")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def extension(self) -> str:
        """Lower-case extension without the dot, or ``""``."""
        name = self.filename.rsplit("/", 1)[-1]
        if "." not in name:
            return ""
        return name.rsplit(".", 1)[-1].lower()


class TextSpan(BaseModel):
    """A chunker output: trimmed content and its offsets in the source text."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(min_length=1)
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_offsets(self) -> TextSpan:
        if self.start_offset >= self.end_offset:
            msg = f"start_offset ({self.start_offset}) must be < end_offset ({self.end_offset})"
            raise ValueError(msg)
        return self


class ChunkMetadata(BaseModel):
    """Position of a chunk within its document's extracted text."""

    model_config = ConfigDict(frozen=True)

    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)


class Chunk(BaseModel):
    """A persisted slice of a document's extracted text.

    ``embedding`` is ``None`` when embedding this chunk failed; such chunks
    keep their index (indices stay dense from 0) but are never returned by
    similarity search.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str = Field(description="Owning document.")
    index: int = Field(ge=0, description="0-based position within the document.")
    content: str = Field(min_length=1)
    token_estimate: int = Field(default=0, ge=0)
    embedding: list[float] | None = Field(default=None)
    metadata: ChunkMetadata

"""Standalone knowledge entries (manual notes and URL extracts).

Knowledge entries are not chunked: each one is embedded as a whole and has
its own lifecycle independent of uploaded documents.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from talon.models.documents import utc_now


class SourceType(str, Enum):
    """Where a knowledge entry came from."""

    DOCUMENT = "document"
    URL = "url"
    MANUAL = "manual"


class KnowledgeEntry(BaseModel):
    """A curated, independently searchable piece of knowledge."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID) of the entry.")
    owner: str = Field(description="Identifier of the creating user.")
    title: str = Field(min_length=1)
    description: str = ""
    source_type: SourceType
    source_reference: str | None = Field(
        default=None,
        description="URL or document id the entry was derived from; None for manual notes.",
    )
    content: str = Field(min_length=1)
    embedding: list[float] | None = None
    tags: frozenset[str] = Field(default_factory=frozenset)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

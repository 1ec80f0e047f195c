"""Immutable tuning configuration passed into each component at construction.

Every pipeline component receives the slice of :class:`TalonConfig` it needs
instead of reading ambient globals, so tests can build components with any
combination of thresholds, batch sizes and chunk sizes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

_DEFAULT_PERSONA = (
    "You are TALON, a specialized AI assistant for military vehicle load planning "
    "and transportation operations. Your expertise includes:\n\n"
    "- Military vehicle specifications and capabilities\n"
    "- Load planning procedures and calculations\n"
    "- Equipment and munition considerations\n"
    "- Transportation logistics and operations\n"
    "- Infrastructure requirements and constraints\n"
    "- Safety protocols and regulations\n\n"
    "Always provide accurate, professional, and actionable advice. If you don't have "
    "specific information, clearly state your limitations and suggest consulting "
    "official military documentation or subject matter experts."
)

_DEFAULT_CLOSING = "Respond in a helpful, professional manner appropriate for military personnel."


class ChunkingConfig(BaseModel):
    """Window size and overlap for splitting extracted text."""

    model_config = ConfigDict(frozen=True)

    max_size: int = Field(default=1000, gt=0, description="Maximum characters per chunk.")
    overlap: int = Field(default=200, ge=0, description="Characters shared by consecutive windows.")
    min_snap_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="A snapped boundary is accepted only past start + max_size * ratio.",
    )


class EmbeddingConfig(BaseModel):
    """Embedding model, input ceiling and batch pacing."""

    model_config = ConfigDict(frozen=True)

    model: str = "text-embedding-3-small"
    dimension: int = Field(default=1536, gt=0)
    max_input_chars: int = Field(default=8000, gt=0)
    batch_size: int = Field(default=5, gt=0)
    batch_pause_seconds: float = Field(default=1.0, ge=0.0)


class ExtractionConfig(BaseModel):
    """Thresholds for the local extraction fallback chain."""

    model_config = ConfigDict(frozen=True)

    min_readable_chars: int = Field(default=50, ge=1)
    min_printable_ratio: float = Field(default=0.6, ge=0.0, le=1.0)
    conversion_extensions: frozenset[str] = frozenset(
        {"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "html", "htm"}
    )


class RetrievalConfig(BaseModel):
    """Similarity thresholds and result limits per source."""

    model_config = ConfigDict(frozen=True)

    chunk_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    chunk_top_k: int = Field(default=5, ge=0)
    knowledge_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    knowledge_top_k: int = Field(default=3, ge=0)


class ChatConfig(BaseModel):
    """Generation request shape."""

    model_config = ConfigDict(frozen=True)

    model: str = "gpt-4o-mini"
    history_turns: int = Field(default=6, ge=0)
    max_output_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    persona: str = _DEFAULT_PERSONA
    closing_instruction: str = _DEFAULT_CLOSING


class IngestionConfig(BaseModel):
    """Upload ceiling and URL ingestion rules."""

    model_config = ConfigDict(frozen=True)

    max_upload_bytes: int = Field(default=20 * 1024 * 1024, gt=0)
    min_url_text_chars: int = Field(default=50, ge=0)
    user_agent: str = "TALON-Bot/1.0"
    fetch_timeout_seconds: float = Field(default=30.0, gt=0.0)


class TalonConfig(BaseModel):
    """Root of the frozen configuration tree."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)

    @model_validator(mode="after")
    def _check_embedding_ceiling(self) -> TalonConfig:
        if self.embedding.max_input_chars < self.chunking.max_size:
            msg = "embedding.max_input_chars must be at least chunking.max_size"
            raise ValueError(msg)
        return self

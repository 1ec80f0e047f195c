"""Shared pytest fixtures for the TALON test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from talon.config.tuning import (
    ChunkingConfig,
    EmbeddingConfig,
    TalonConfig,
)
from talon.interfaces.embedding_provider import IEmbeddingProvider
from talon.interfaces.llm_provider import ILLMProvider
from talon.providers.knowledge_store.sqlite_knowledge_store import SQLiteKnowledgeStore
from talon.providers.storage.local_file_storage import LocalFileStorage
from talon.services.extraction.text_extractor import TextExtractor
from talon.services.ingestion.chunker import TextChunker
from talon.services.ingestion.embedder import Embedder
from talon.services.ingestion.pipeline import IngestionPipeline
from talon.utils.errors import EmbeddingServiceError

# Each vocabulary word owns one axis; the last axis catches texts with none of them.
VOCABULARY = ("vehicle", "load", "ramp", "axle", "munition", "convoy", "bridge")
TEST_DIMENSION = len(VOCABULARY) + 1


def keyword_vector(text: str) -> list[float]:
    """Deterministic bag-of-keywords embedding used by the mock provider."""
    lowered = text.lower()
    vector = [float(lowered.count(word)) for word in VOCABULARY]
    vector.append(0.0 if any(vector) else 1.0)
    return vector


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """In-memory embedding provider with keyword-count vectors.

    Any text containing one of ``fail_on`` raises :class:`EmbeddingServiceError`,
    which lets tests exercise partial embedding failure.
    """

    def __init__(self, fail_on: tuple[str, ...] = ()) -> None:
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingServiceError(
                message="rate limited",
                provider_name="keyword",
                status_code=429,
                body='{"error": "rate_limit_exceeded"}',
            )
        return keyword_vector(text)

    def get_dimension(self) -> int:
        return TEST_DIMENSION

    def get_provider_name(self) -> str:
        return "keyword"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def talon_config() -> TalonConfig:
    """Small chunks, test-sized vectors, and no pause between embedding groups."""
    return TalonConfig(
        chunking=ChunkingConfig(max_size=200, overlap=40),
        embedding=EmbeddingConfig(
            model="keyword",
            dimension=TEST_DIMENSION,
            max_input_chars=2000,
            batch_size=3,
            batch_pause_seconds=0.0,
        ),
    )


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.fixture
def embedding_provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def embedder(embedding_provider: KeywordEmbeddingProvider, talon_config: TalonConfig) -> Embedder:
    return Embedder(embedding_provider, talon_config.embedding)


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider; override ``chat.return_value`` or ``chat.side_effect`` per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.chat = AsyncMock(return_value="Use the 463L pallet tie-down pattern.")
    return mock


@pytest.fixture
async def knowledge_store(tmp_path: Path) -> SQLiteKnowledgeStore:
    store = SQLiteKnowledgeStore(db_path=tmp_path / "talon.db", dimension=TEST_DIMENSION)
    await store.initialize()
    return store


@pytest.fixture
def file_storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(root=tmp_path / "uploads")


@pytest.fixture
def pipeline(
    talon_config: TalonConfig,
    knowledge_store: SQLiteKnowledgeStore,
    file_storage: LocalFileStorage,
    embedder: Embedder,
) -> IngestionPipeline:
    return IngestionPipeline(
        config=talon_config,
        store=knowledge_store,
        file_storage=file_storage,
        extractor=TextExtractor(talon_config.extraction),
        chunker=TextChunker(talon_config.chunking),
        embedder=embedder,
    )


@pytest.fixture
def sample_manual_text() -> str:
    """Multi-paragraph plain text long enough to produce several chunks."""
    return (
        "Vehicle load planning begins with the axle weights of every vehicle in the convoy. "
        "Planners record each axle load before any vehicle approaches the ramp.\n\n"
        "Munition pallets are secured separately. Each munition pallet is tied down with "
        "rated straps and inspected before the load is accepted.\n\n"
        "Bridge classifications limit convoy routes. A convoy must not cross a bridge whose "
        "classification is below the heaviest vehicle in the convoy.\n\n"
        "The ramp angle limits which vehicle can be driven aboard. Low-clearance vehicles may "
        "need shoring on the ramp to avoid striking the hinge."
    )

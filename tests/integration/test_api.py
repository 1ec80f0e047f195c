"""Integration tests for FastAPI API endpoints using TestClient."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from talon import __version__
from talon.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from talon.api.routes import router as api_router
from talon.config.tuning import (
    ChunkingConfig,
    EmbeddingConfig,
    IngestionConfig,
    RetrievalConfig,
    TalonConfig,
)
from talon.interfaces.llm_provider import ILLMProvider
from talon.interfaces.web_page_provider import IWebPageProvider, WebPage
from talon.providers.knowledge_store.sqlite_knowledge_store import SQLiteKnowledgeStore
from talon.providers.storage.local_file_storage import LocalFileStorage
from talon.services.chat_service import ChatOrchestrator
from talon.services.extraction.text_extractor import TextExtractor
from talon.services.ingestion.chunker import TextChunker
from talon.services.ingestion.embedder import Embedder
from talon.services.ingestion.pipeline import IngestionPipeline
from talon.services.retrieval.assembler import RetrievalAssembler
from talon.utils.errors import LLMError, SourceFetchError
from tests.conftest import TEST_DIMENSION, KeywordEmbeddingProvider

_MANUAL = (
    b"Every vehicle must be chocked on the ramp before the load is released. "
    b"Check each axle weight against the ramp rating.\n\n"
    b"A convoy keeps fifty meters between vehicles on every bridge."
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app(
    tmp_path: Path,
    max_upload_bytes: int = 1024 * 1024,
    provider_registry: dict | None = None,
) -> tuple[FastAPI, MagicMock, MagicMock]:
    """Create a FastAPI app wired to a temporary store and mocked upstreams."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)

    config = TalonConfig(
        chunking=ChunkingConfig(max_size=200, overlap=40),
        embedding=EmbeddingConfig(
            model="keyword",
            dimension=TEST_DIMENSION,
            max_input_chars=2000,
            batch_size=3,
            batch_pause_seconds=0.0,
        ),
        retrieval=RetrievalConfig(chunk_threshold=0.3, knowledge_threshold=0.3),
        ingestion=IngestionConfig(max_upload_bytes=max_upload_bytes),
    )

    store = SQLiteKnowledgeStore(db_path=tmp_path / "api.db", dimension=TEST_DIMENSION)
    asyncio.run(store.initialize())
    embedder = Embedder(KeywordEmbeddingProvider(), config.embedding)

    web_pages = MagicMock(spec=IWebPageProvider)
    web_pages.fetch = AsyncMock(
        return_value=WebPage(
            url="https://docs.example.mil/bridges",
            text="Bridge Classification Rules\n" + "Every bridge has a load class. " * 4,
            host="docs.example.mil",
        )
    )

    llm = MagicMock(spec=ILLMProvider)
    llm.get_provider_name.return_value = "mock-llm"
    llm.chat = AsyncMock(return_value="Chock the wheels first.")

    pipeline = IngestionPipeline(
        config=config,
        store=store,
        file_storage=LocalFileStorage(root=tmp_path / "uploads"),
        extractor=TextExtractor(config.extraction),
        chunker=TextChunker(config.chunking),
        embedder=embedder,
        web_pages=web_pages,
    )
    assembler = RetrievalAssembler(config.retrieval, embedder, store)

    app.state.talon_config = config
    app.state.knowledge_store = store
    app.state.ingestion_pipeline = pipeline
    app.state.chat_orchestrator = ChatOrchestrator(config.chat, assembler, llm)
    if provider_registry is not None:
        app.state.provider_registry = provider_registry

    return app, llm, web_pages


@pytest.fixture
def api(tmp_path: Path) -> tuple[TestClient, MagicMock, MagicMock]:
    app, llm, web_pages = _create_test_app(tmp_path)
    return TestClient(app), llm, web_pages


def _upload(client: TestClient, data: bytes = _MANUAL, name: str = "manual.txt", **params) -> dict:
    response = client.post(
        "/api/v1/documents",
        files={"file": (name, data, "text/plain")},
        params=params,
        headers={"X-User-Id": "planner"},
    )
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocumentEndpoints:
    def test_upload_without_processing(self, api) -> None:
        client, _, _ = api

        body = _upload(client, process="false")

        assert body["processing_scheduled"] is False
        assert body["document"]["status"] == "pending"
        assert body["document"]["filename"] == "manual.txt"
        assert body["document"]["size"] == len(_MANUAL)

    def test_upload_then_process(self, api) -> None:
        client, _, _ = api
        document_id = _upload(client, process="false")["document"]["id"]

        response = client.post(f"/api/v1/documents/{document_id}/process")

        assert response.status_code == 200
        result = response.json()
        assert result["status"] == "completed"
        assert result["chunks_created"] >= 1
        assert result["chunks_embedded"] == result["chunks_created"]

        document = client.get(f"/api/v1/documents/{document_id}").json()
        assert document["status"] == "completed"

    def test_background_processing(self, api) -> None:
        client, _, _ = api

        body = _upload(client)

        assert body["processing_scheduled"] is True
        document = client.get(f"/api/v1/documents/{body['document']['id']}").json()
        assert document["status"] == "completed"

    def test_failed_processing_is_reported_in_body(self, api) -> None:
        client, _, _ = api
        document_id = _upload(client, data=b"\xff\xfe\xfa", name="blob.bin", process="false")["document"]["id"]

        response = client.post(f"/api/v1/documents/{document_id}/process")

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert "UTF-8" in response.json()["error"]

    def test_list_is_scoped_to_owner(self, api) -> None:
        client, _, _ = api
        _upload(client, process="false")

        mine = client.get("/api/v1/documents", headers={"X-User-Id": "planner"}).json()
        theirs = client.get("/api/v1/documents").json()

        assert mine["total"] == 1
        assert theirs["total"] == 0

    def test_unknown_document(self, api) -> None:
        client, _, _ = api

        for response in (
            client.get("/api/v1/documents/missing"),
            client.post("/api/v1/documents/missing/process"),
            client.delete("/api/v1/documents/missing"),
        ):
            assert response.status_code == 404
            assert response.json()["error"] == "DocumentNotFoundError"

    def test_delete(self, api) -> None:
        client, _, _ = api
        document_id = _upload(client)["document"]["id"]

        response = client.delete(f"/api/v1/documents/{document_id}")

        assert response.status_code == 200
        assert response.json() == {"deleted": True}
        assert client.get(f"/api/v1/documents/{document_id}").status_code == 404

    def test_empty_upload_is_rejected(self, api) -> None:
        client, _, _ = api
        response = client.post("/api/v1/documents", files={"file": ("a.txt", b"", "text/plain")})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInputError"

    def test_oversized_upload_is_rejected(self, tmp_path: Path) -> None:
        app, _, _ = _create_test_app(tmp_path, max_upload_bytes=16)
        client = TestClient(app)

        response = client.post("/api/v1/documents", files={"file": ("a.txt", b"x" * 17, "text/plain")})

        assert response.status_code == 413
        assert client.get("/api/v1/documents").json()["total"] == 0


# ---------------------------------------------------------------------------
# Knowledge
# ---------------------------------------------------------------------------


class TestKnowledgeEndpoints:
    def test_add_manual_and_list(self, api) -> None:
        client, _, _ = api

        response = client.post(
            "/api/v1/knowledge/manual",
            json={"title": "Ramp rule", "content": "Max ramp angle 15 degrees.", "tags": ["ramp"]},
        )

        assert response.status_code == 201
        entry = response.json()
        assert entry["source_type"] == "manual"
        assert entry["description"] == "Manual entry: Ramp rule"
        assert entry["tags"] == ["ramp"]
        assert entry["content_length"] == len("Max ramp angle 15 degrees.")

        listing = client.get("/api/v1/knowledge").json()
        assert listing["total"] == 1
        assert listing["entries"][0]["id"] == entry["id"]

    def test_manual_requires_title(self, api) -> None:
        client, _, _ = api
        response = client.post("/api/v1/knowledge/manual", json={"title": " ", "content": "x"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Title and content are required"

    def test_add_url(self, api) -> None:
        client, _, web_pages = api

        response = client.post("/api/v1/knowledge/url", json={"url": "https://docs.example.mil/bridges"})

        assert response.status_code == 201
        entry = response.json()
        assert entry["title"] == "Bridge Classification Rules"
        assert entry["source_type"] == "url"
        assert entry["tags"] == ["url", "web-content"]
        web_pages.fetch.assert_awaited_once_with("https://docs.example.mil/bridges")

    def test_url_fetch_failure(self, api) -> None:
        client, _, web_pages = api
        web_pages.fetch.side_effect = SourceFetchError(message="Failed to fetch URL: 404 Not Found")

        response = client.post("/api/v1/knowledge/url", json={"url": "https://example.com/x"})

        assert response.status_code == 502
        assert response.json() == {
            "error": "SourceFetchError",
            "detail": "Failed to fetch URL: 404 Not Found",
        }


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class TestChatEndpoint:
    def test_chat_grounded_in_uploaded_document(self, api) -> None:
        client, llm, _ = api
        _upload(client)

        response = client.post(
            "/api/v1/chat",
            json={
                "message": "How should a vehicle go up the ramp?",
                "conversation_history": [
                    {"role": "user", "content": "Hi"},
                    {"role": "assistant", "content": "Hello, how can I help?"},
                ],
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == "Chock the wheels first."
        assert body["contexts_used"]["document_chunks"] >= 1
        messages = llm.chat.await_args.args[0]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert "Relevant document excerpts:" in messages[0]["content"]

    def test_generation_failure(self, api) -> None:
        client, llm, _ = api
        llm.chat.side_effect = LLMError(message="quota exceeded", provider_name="openai")

        response = client.post("/api/v1/chat", json={"message": "hello"})

        assert response.status_code == 502
        assert response.json()["error"] == "GenerationError"
        assert "quota" not in response.json()["detail"]

    def test_empty_message_is_a_validation_error(self, api) -> None:
        client, llm, _ = api
        response = client.post("/api/v1/chat", json={"message": ""})
        assert response.status_code == 422
        llm.chat.assert_not_awaited()


# ---------------------------------------------------------------------------
# Maintenance / health
# ---------------------------------------------------------------------------


class TestMaintenanceAndHealth:
    def test_reset_stale(self, api) -> None:
        client, _, _ = api
        response = client.post("/api/v1/maintenance/reset-stale")
        assert response.status_code == 200
        assert response.json() == {"reset": 0}

    def test_health_healthy(self, tmp_path: Path) -> None:
        app, _, _ = _create_test_app(
            tmp_path, provider_registry={"llm": True, "embedding": True, "llm_provider": "openai"}
        )
        body = TestClient(app).get("/api/v1/health").json()
        assert body["status"] == "healthy"
        assert body["version"] == __version__
        assert body["providers"]["llm_provider"] == "openai"

    def test_health_degraded(self, tmp_path: Path) -> None:
        app, _, _ = _create_test_app(tmp_path, provider_registry={"llm": False, "embedding": True})
        assert TestClient(app).get("/api/v1/health").json()["status"] == "degraded"

"""TALON application entry point.

Builds every provider and service (dependency injection by hand), stores
them on ``app.state`` during the FastAPI lifespan, and serves the API with
uvicorn when run as a module::

    python -m talon.main
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from talon import __version__
from talon.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from talon.api.routes import router as api_router
from talon.config.loader import load_talon_config
from talon.config.settings import Settings
from talon.config.tuning import TalonConfig
from talon.interfaces.embedding_provider import IEmbeddingProvider
from talon.interfaces.llm_provider import ILLMProvider
from talon.providers.conversion.unstructured_converter import UnstructuredConverter
from talon.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from talon.providers.knowledge_store.sqlite_knowledge_store import SQLiteKnowledgeStore
from talon.providers.llm.anthropic_provider import AnthropicLLMProvider
from talon.providers.llm.openai_provider import OpenAILLMProvider
from talon.providers.storage.local_file_storage import LocalFileStorage
from talon.providers.web.httpx_web_page_provider import HttpxWebPageProvider
from talon.services.chat_service import ChatOrchestrator
from talon.services.extraction.text_extractor import TextExtractor
from talon.services.ingestion.chunker import TextChunker
from talon.services.ingestion.embedder import Embedder
from talon.services.ingestion.pipeline import IngestionPipeline
from talon.services.retrieval.assembler import RetrievalAssembler
from talon.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_talon_config(settings.config_path, settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings, app_config: TalonConfig) -> ILLMProvider:
    """Select the generation provider from the configured API keys.

    Priority order: OpenAI -> Anthropic.  With neither key set the OpenAI
    adapter is returned unavailable, and chat turns fail with a generation
    error until a key is configured.
    """
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings, model=app_config.chat.model)
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    return OpenAILLMProvider(settings=app_settings, model=app_config.chat.model)


def _build_embedding_provider(app_settings: Settings, app_config: TalonConfig) -> IEmbeddingProvider:
    return OpenAIEmbeddingProvider(
        settings=app_settings,
        model=app_config.embedding.model,
        dimension=app_config.embedding.dimension,
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: TalonConfig) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components to be stored on ``app.state``
    (or used directly by the CLI).
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_config.ingestion.fetch_timeout_seconds)

    # -- Providers --
    llm = _build_llm_provider(app_settings, app_config)
    embedding_provider = _build_embedding_provider(app_settings, app_config)
    knowledge_store = SQLiteKnowledgeStore(
        db_path=app_settings.database_path,
        dimension=app_config.embedding.dimension,
    )
    file_storage = LocalFileStorage(root=app_settings.storage_dir)
    converter = UnstructuredConverter(
        api_key=app_settings.unstructured_api_key,
        http_client=http_client,
        api_url=app_settings.unstructured_api_url,
    )
    web_pages = HttpxWebPageProvider(
        http_client=http_client,
        user_agent=app_config.ingestion.user_agent,
    )

    # -- Services --
    embedder = Embedder(embedding_provider, app_config.embedding)
    extractor = TextExtractor(
        app_config.extraction,
        converter=converter if converter.is_available() else None,
    )
    ingestion_pipeline = IngestionPipeline(
        config=app_config,
        store=knowledge_store,
        file_storage=file_storage,
        extractor=extractor,
        chunker=TextChunker(app_config.chunking),
        embedder=embedder,
        web_pages=web_pages,
    )
    assembler = RetrievalAssembler(app_config.retrieval, embedder, knowledge_store)
    chat_orchestrator = ChatOrchestrator(app_config.chat, assembler, llm)

    provider_registry = {
        "llm": llm.is_available(),
        "llm_provider": llm.get_provider_name(),
        "embedding": embedding_provider.is_available(),
        "conversion": converter.is_available(),
        "knowledge_store": knowledge_store.get_provider_name(),
    }

    return {
        "http_client": http_client,
        "talon_config": app_config,
        "knowledge_store": knowledge_store,
        "ingestion_pipeline": ingestion_pipeline,
        "retrieval_assembler": assembler,
        "chat_orchestrator": chat_orchestrator,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build all components and initialize the store on startup; close HTTP on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["knowledge_store"].initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        llm_provider=components["provider_registry"]["llm_provider"],
        conversion=components["provider_registry"]["conversion"],
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="TALON API",
        version=__version__,
        description=(
            "Upload documents or URLs into a knowledge base and chat with an "
            "assistant whose answers are grounded in the retrieved content."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "talon.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )

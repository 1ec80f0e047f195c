"""FastAPI route handlers for the TALON API.

Service dependencies are resolved from ``app.state`` (populated at startup
by ``main._build_all``) through ``Depends`` helpers and ``Annotated`` aliases.

    Endpoint                               Method  Description
    ---------------------------------------------------------------------
    /api/v1/documents                      POST    Upload a file (optionally process it)
    /api/v1/documents                      GET     List the caller's documents
    /api/v1/documents/{id}                 GET     One document with its status
    /api/v1/documents/{id}/process         POST    (Re)process a document now
    /api/v1/documents/{id}                 DELETE  Delete document, chunks and file
    /api/v1/knowledge/url                  POST    Fetch a URL into the knowledge base
    /api/v1/knowledge/manual               POST    Add a manual knowledge note
    /api/v1/knowledge                      GET     List the caller's knowledge entries
    /api/v1/chat                           POST    Retrieval-grounded chat turn
    /api/v1/maintenance/reset-stale        POST    Move stuck documents to failed
    /api/v1/health                         GET     Health check + provider status

Authentication is out of scope; the caller identifies itself with the
``X-User-Id`` header, which defaults to ``"default"``.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request, UploadFile

from talon import __version__
from talon.api.schemas import (
    AddManualKnowledgeRequest,
    AddUrlRequest,
    ChatRequest,
    ChatResponse,
    ContextsUsed,
    DeleteResponse,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    KnowledgeEntryResponse,
    KnowledgeListResponse,
    ProcessResponse,
    ResetStaleResponse,
    UploadResponse,
)
from talon.interfaces.knowledge_store import IKnowledgeStore
from talon.models.chat import ChatTurn
from talon.services.chat_service import ChatOrchestrator
from talon.services.ingestion.pipeline import IngestionPipeline
from talon.utils.errors import DocumentNotFoundError
from talon.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Read uploads in 64 KB increments so oversized files are rejected early.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers -- resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.ingestion_pipeline


def _get_store(request: Request) -> IKnowledgeStore:
    return request.app.state.knowledge_store


def _get_chat(request: Request) -> ChatOrchestrator:
    return request.app.state.chat_orchestrator


def _get_owner(x_user_id: Annotated[str | None, Header()] = None) -> str:
    return (x_user_id or "").strip() or "default"


PipelineDep = Annotated[IngestionPipeline, Depends(_get_pipeline)]
StoreDep = Annotated[IKnowledgeStore, Depends(_get_store)]
ChatDep = Annotated[ChatOrchestrator, Depends(_get_chat)]
OwnerDep = Annotated[str, Depends(_get_owner)]


async def _read_upload(file: UploadFile, limit: int) -> bytes:
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > limit:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: >{limit // (1024 * 1024)} MB. Maximum: {limit} bytes.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=UploadResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}},
    summary="Upload a document for ingestion",
)
async def upload_document(
    file: UploadFile,
    request: Request,
    background_tasks: BackgroundTasks,
    pipeline: PipelineDep,
    owner: OwnerDep,
    process: bool = True,
) -> UploadResponse:
    """Store the file, create a pending document, and optionally queue processing."""
    limit = request.app.state.talon_config.ingestion.max_upload_bytes
    data = await _read_upload(file, limit)

    document = await pipeline.register_upload(
        owner=owner,
        filename=file.filename or "",
        data=data,
        mime_type=file.content_type or "application/octet-stream",
    )
    if process:
        background_tasks.add_task(pipeline.process_document, document.id)

    return UploadResponse(
        document=DocumentResponse.from_document(document),
        processing_scheduled=process,
    )


@router.get("/documents", response_model=DocumentListResponse, summary="List documents")
async def list_documents(store: StoreDep, owner: OwnerDep) -> DocumentListResponse:
    documents = await store.list_documents(owner=owner)
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d) for d in documents],
        total=len(documents),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document",
)
async def get_document(document_id: str, store: StoreDep) -> DocumentResponse:
    document = await store.get_document(document_id)
    if document is None:
        raise DocumentNotFoundError(message=f"Document {document_id} not found")
    return DocumentResponse.from_document(document)


@router.post(
    "/documents/{document_id}/process",
    response_model=ProcessResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Process (or reprocess) a document synchronously",
)
async def process_document(
    document_id: str,
    store: StoreDep,
    pipeline: PipelineDep,
) -> ProcessResponse:
    """Run the ingestion pipeline now; a failed run is reported in the body, not as an error."""
    if await store.get_document(document_id) is None:
        raise DocumentNotFoundError(message=f"Document {document_id} not found")
    result = await pipeline.process_document(document_id)
    return ProcessResponse.from_result(result)


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document with its chunks and stored file",
)
async def delete_document(document_id: str, pipeline: PipelineDep) -> DeleteResponse:
    if not await pipeline.delete_document(document_id):
        raise DocumentNotFoundError(message=f"Document {document_id} not found")
    return DeleteResponse(deleted=True)


# ---------------------------------------------------------------------------
# Knowledge entries
# ---------------------------------------------------------------------------


@router.post(
    "/knowledge/url",
    response_model=KnowledgeEntryResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Fetch a URL and add its text to the knowledge base",
)
async def add_url(
    body: AddUrlRequest,
    pipeline: PipelineDep,
    owner: OwnerDep,
) -> KnowledgeEntryResponse:
    entry = await pipeline.ingest_url(owner=owner, url=body.url)
    return KnowledgeEntryResponse.from_entry(entry)


@router.post(
    "/knowledge/manual",
    response_model=KnowledgeEntryResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    summary="Add a manual note to the knowledge base",
)
async def add_manual_knowledge(
    body: AddManualKnowledgeRequest,
    pipeline: PipelineDep,
    owner: OwnerDep,
) -> KnowledgeEntryResponse:
    entry = await pipeline.add_manual_knowledge(
        owner=owner,
        title=body.title,
        content=body.content,
        tags=body.tags,
    )
    return KnowledgeEntryResponse.from_entry(entry)


@router.get("/knowledge", response_model=KnowledgeListResponse, summary="List knowledge entries")
async def list_knowledge(store: StoreDep, owner: OwnerDep) -> KnowledgeListResponse:
    entries = await store.list_knowledge_entries(owner=owner)
    return KnowledgeListResponse(
        entries=[KnowledgeEntryResponse.from_entry(e) for e in entries],
        total=len(entries),
    )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Ask the assistant, grounded in the knowledge base",
)
async def chat(body: ChatRequest, orchestrator: ChatDep) -> ChatResponse:
    history = [ChatTurn(role=item.role, content=item.content) for item in body.conversation_history]
    reply = await orchestrator.respond(body.message, history)
    return ChatResponse(
        response=reply.response,
        contexts_used=ContextsUsed(**reply.contexts_used.model_dump()),
    )


# ---------------------------------------------------------------------------
# Maintenance / health
# ---------------------------------------------------------------------------


@router.post(
    "/maintenance/reset-stale",
    response_model=ResetStaleResponse,
    summary="Move documents stuck in processing to failed",
)
async def reset_stale(pipeline: PipelineDep) -> ResetStaleResponse:
    count = await pipeline.reset_stale_processing()
    return ResetStaleResponse(reset=count)


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    critical_ok = providers.get("llm", False) and providers.get("embedding", False)
    return HealthResponse(
        status="healthy" if critical_ok else "degraded",
        version=__version__,
        providers=providers,
    )

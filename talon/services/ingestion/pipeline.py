"""Orchestrator for document and knowledge-entry ingestion.

Document pipeline stages: **load -> extract -> chunk -> embed -> store**.

Each Document moves through ``pending -> processing -> completed | failed``:

    1. IFileStorage -- loads the uploaded bytes
    2. TextExtractor -- recovers plain / Markdown text
    3. TextChunker -- splits the text into overlapping spans
    4. Embedder -- embeds every span in paced concurrent groups
    5. IKnowledgeStore -- replaces the document's chunks and records status

``completed`` is reached once every chunk-embedding attempt has finished,
even if some (or all) of them failed; chunks whose embedding failed are
stored without a vector and never match a search.  Extraction failures,
empty text, and any other error move the Document to ``failed``.  The
pipeline never raises for a failed document: :meth:`IngestionPipeline.process_document`
returns an :class:`~talon.models.rag.IngestionResult` describing the outcome.

Standalone knowledge entries (manual notes and URL extracts) skip chunking:
each is embedded as a whole and stored directly.
"""

from __future__ import annotations

import time
import uuid
from urllib.parse import urlparse

import structlog

from talon.config.tuning import TalonConfig
from talon.interfaces.file_storage import IFileStorage
from talon.interfaces.knowledge_store import IKnowledgeStore
from talon.interfaces.web_page_provider import IWebPageProvider
from talon.models.documents import (
    Chunk,
    ChunkMetadata,
    Document,
    DocumentStatus,
    TextSpan,
    estimate_tokens,
)
from talon.models.knowledge import KnowledgeEntry, SourceType
from talon.models.rag import IngestionResult
from talon.services.extraction.text_extractor import TextExtractor
from talon.services.ingestion.chunker import TextChunker
from talon.services.ingestion.embedder import Embedder
from talon.utils.errors import (
    DocumentNotFoundError,
    ExtractionError,
    InvalidInputError,
    PipelineError,
    SourceFetchError,
    TalonError,
)

logger = structlog.get_logger(logger_name=__name__)

_URL_TAGS = frozenset({"url", "web-content"})


def derive_title(text: str, host: str) -> str:
    """Pick a knowledge-entry title for fetched web text.

    The first line is used when it is between 10 and 100 characters long
    (exclusive); otherwise the title names the host.
    """
    first_line = text.strip().split("\n", 1)[0].strip() if text.strip() else ""
    if 10 < len(first_line) < 100:
        return first_line
    if host:
        return f"Content from {host}"
    return "Web Content"


class IngestionPipeline:
    """Coordinates extraction, chunking, embedding and persistence.

    Parameters
    ----------
    config:
        Full tuning tree; the pipeline reads ``ingestion`` and hands the
        other slices to collaborators built by the caller.
    store:
        Durable store for documents, chunks and knowledge entries.
    file_storage:
        Holds the raw bytes of uploaded files.
    extractor:
        Converts raw bytes to text.
    chunker:
        Splits extracted text into spans.
    embedder:
        Paced, dimension-checked embedding client.
    web_pages:
        Optional URL fetcher used by :meth:`ingest_url`.
    """

    def __init__(
        self,
        config: TalonConfig,
        store: IKnowledgeStore,
        file_storage: IFileStorage,
        extractor: TextExtractor,
        chunker: TextChunker,
        embedder: Embedder,
        web_pages: IWebPageProvider | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._file_storage = file_storage
        self._extractor = extractor
        self._chunker = chunker
        self._embedder = embedder
        self._web_pages = web_pages

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def register_upload(
        self,
        owner: str,
        filename: str,
        data: bytes,
        mime_type: str = "application/octet-stream",
    ) -> Document:
        """Store uploaded bytes and create a ``pending`` Document.

        Raises
        ------
        InvalidInputError
            If the file is empty, unnamed, or larger than ``max_upload_bytes``.
        """
        limit = self._config.ingestion.max_upload_bytes
        if not filename:
            raise InvalidInputError(message="A file name is required")
        if not data:
            raise InvalidInputError(message="File is empty")
        if len(data) > limit:
            raise InvalidInputError(
                message=f"File too large: {len(data)} bytes (limit {limit} bytes)",
            )

        storage_path = await self._file_storage.save(owner, filename, data)
        document = Document(
            id=str(uuid.uuid4()),
            owner=owner,
            filename=filename,
            size=len(data),
            mime_type=mime_type or "application/octet-stream",
            status=DocumentStatus.PENDING,
            storage_path=storage_path,
        )
        await self._store.create_document(document)
        logger.info(
            "document_registered",
            document_id=document.id,
            filename=filename,
            size=document.size,
        )
        return document

    async def ingest_upload(
        self,
        owner: str,
        filename: str,
        data: bytes,
        mime_type: str = "application/octet-stream",
    ) -> IngestionResult:
        """Register an upload and process it immediately."""
        document = await self.register_upload(owner, filename, data, mime_type)
        return await self.process_document(document.id)

    async def process_document(self, document_id: str) -> IngestionResult:
        """Run the full pipeline for one Document.

        Re-processing a Document deletes its existing chunks before the new
        ones are written, so chunk indices always run densely from 0.

        Returns
        -------
        IngestionResult
            ``status`` is ``completed`` or ``failed``; ``error`` carries the
            failure reason.
        """
        start = time.monotonic()
        log = logger.bind(document_id=document_id)

        try:
            if not document_id:
                raise PipelineError(message="Document id is required")

            document = await self._store.get_document(document_id)
            if document is None:
                raise DocumentNotFoundError(message=f"Document {document_id} not found")

            await self._store.update_document_status(document_id, DocumentStatus.PROCESSING)
            log.info("document_processing_started", filename=document.filename)

            data = await self._file_storage.load(document.storage_path)
            text = await self._extractor.extract(data, document.filename)
            if not text.strip():
                raise ExtractionError(message="Extracted text is empty")

            spans = self._chunker.chunk(text)
            if not spans:
                raise ExtractionError(message="Extracted text produced no chunks")

            removed = await self._store.delete_chunks(document_id)
            if removed:
                log.info("previous_chunks_removed", count=removed)

            chunks = await self._embed_spans(document_id, spans)
            await self._store.insert_chunks(chunks)
            await self._store.update_document_status(document_id, DocumentStatus.COMPLETED)
        except Exception as exc:  # noqa: BLE001
            error = str(exc) if isinstance(exc, TalonError) else f"{type(exc).__name__}: {exc}"
            log.error(
                "document_processing_failed",
                error=error,
                error_type=type(exc).__name__,
            )
            await self._mark_failed(document_id)
            return IngestionResult(
                document_id=document_id,
                status=DocumentStatus.FAILED,
                ingestion_time=round(time.monotonic() - start, 3),
                error=error,
            )

        embedded = sum(1 for c in chunks if c.embedding is not None)
        result = IngestionResult(
            document_id=document_id,
            status=DocumentStatus.COMPLETED,
            chunks_created=len(chunks),
            chunks_embedded=embedded,
            total_tokens=sum(c.token_estimate for c in chunks),
            ingestion_time=round(time.monotonic() - start, 3),
        )
        log.info(
            "document_processing_complete",
            chunks_created=result.chunks_created,
            chunks_embedded=result.chunks_embedded,
            total_tokens=result.total_tokens,
            ingestion_time=result.ingestion_time,
        )
        return result

    async def delete_document(self, document_id: str) -> bool:
        """Delete a Document, its chunks, and its stored file.

        Returns ``False`` if the Document does not exist.
        """
        document = await self._store.get_document(document_id)
        if document is None:
            return False

        deleted = await self._store.delete_document(document_id)
        try:
            await self._file_storage.delete(document.storage_path)
        except TalonError as exc:
            logger.warning(
                "stored_file_delete_failed",
                document_id=document_id,
                storage_path=document.storage_path,
                error=str(exc),
            )
        logger.info("document_deleted", document_id=document_id)
        return deleted

    async def reset_stale_processing(self) -> int:
        """Move every ``processing`` Document to ``failed`` so it can be retried."""
        count = await self._store.reset_stale_processing()
        logger.info("stale_documents_marked_failed", count=count)
        return count

    # ------------------------------------------------------------------
    # Knowledge entries
    # ------------------------------------------------------------------

    async def ingest_url(self, owner: str, url: str) -> KnowledgeEntry:
        """Fetch *url* and store its visible text as a knowledge entry.

        Raises
        ------
        InvalidInputError
            If *url* is blank, or the page yields too little text.
        SourceFetchError
            If the page cannot be fetched.
        """
        url = (url or "").strip()
        if not url:
            raise InvalidInputError(message="URL is required")
        if self._web_pages is None:
            raise SourceFetchError(message="URL ingestion is not configured")

        page = await self._web_pages.fetch(url)
        text = page.text.strip()
        if len(text) < self._config.ingestion.min_url_text_chars:
            raise InvalidInputError(
                message="No meaningful content could be extracted from the URL",
            )

        host = page.host or (urlparse(url).hostname or "")
        entry = KnowledgeEntry(
            id=str(uuid.uuid4()),
            owner=owner,
            title=derive_title(text, host),
            description=f"Content extracted from: {url}",
            source_type=SourceType.URL,
            source_reference=url,
            content=text,
            embedding=await self._embedder.embed(text),
            tags=_URL_TAGS,
        )
        await self._store.insert_knowledge_entry(entry)
        logger.info(
            "url_knowledge_added",
            entry_id=entry.id,
            url=url,
            content_length=len(text),
        )
        return entry

    async def add_manual_knowledge(
        self,
        owner: str,
        title: str,
        content: str,
        tags: list[str] | frozenset[str] | None = None,
    ) -> KnowledgeEntry:
        """Store a hand-written note as a knowledge entry.

        Raises
        ------
        InvalidInputError
            If *title* or *content* is blank.
        """
        title = (title or "").strip()
        content = (content or "").strip()
        if not title or not content:
            raise InvalidInputError(message="Title and content are required")

        entry = KnowledgeEntry(
            id=str(uuid.uuid4()),
            owner=owner,
            title=title,
            description=f"Manual entry: {title}",
            source_type=SourceType.MANUAL,
            source_reference=None,
            content=content,
            embedding=await self._embedder.embed(content),
            tags=frozenset(t.strip() for t in (tags or []) if t and t.strip()),
        )
        await self._store.insert_knowledge_entry(entry)
        logger.info("manual_knowledge_added", entry_id=entry.id, title=title)
        return entry

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_spans(self, document_id: str, spans: list[TextSpan]) -> list[Chunk]:
        vectors = await self._embedder.embed_paced(
            [span.content for span in spans],
            labels=[f"{document_id}#{i}" for i in range(len(spans))],
        )
        return [
            Chunk(
                id=str(uuid.uuid4()),
                document_id=document_id,
                index=index,
                content=span.content,
                token_estimate=estimate_tokens(span.content),
                embedding=vector,
                metadata=ChunkMetadata(start_offset=span.start_offset, end_offset=span.end_offset),
            )
            for index, (span, vector) in enumerate(zip(spans, vectors))
        ]

    async def _mark_failed(self, document_id: str) -> None:
        """Best-effort transition to ``failed``; never raises."""
        if not document_id:
            return
        try:
            await self._store.update_document_status(document_id, DocumentStatus.FAILED)
        except TalonError as exc:
            logger.error(
                "document_status_update_failed",
                document_id=document_id,
                error=str(exc),
            )

"""Abstract base class for the durable knowledge store.

The store persists documents, their chunks, and standalone knowledge
entries together with embeddings, and answers similarity queries.  All
durable state lives behind this contract; request handlers hold none.

Search contract (both chunk and knowledge search):

- similarity is ``1 - cosine_distance`` between query and stored vector
- only rows with similarity strictly greater than the threshold are returned
- results are ordered by increasing distance, ties in stable order
- at most ``top_k`` rows are returned
- rows without an embedding are never returned
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from talon.models.documents import Chunk, Document, DocumentStatus
from talon.models.knowledge import KnowledgeEntry
from talon.models.rag import RetrievalResult


# Concrete implementations: SQLiteKnowledgeStore
# Located in: talon/providers/knowledge_store/
class IKnowledgeStore(ABC):
    """Contract for persistence and similarity search."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they do not exist."""

    # -- Documents ----------------------------------------------------------

    @abstractmethod
    async def create_document(self, document: Document) -> Document:
        """Persist a new document row and return it."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` if it does not exist."""

    @abstractmethod
    async def list_documents(self, owner: str | None = None) -> list[Document]:
        """Return documents (optionally for one owner), newest first."""

    @abstractmethod
    async def update_document_status(self, document_id: str, status: DocumentStatus) -> None:
        """Set the status of a document and bump ``updated_at``.

        Raises
        ------
        talon.utils.errors.DocumentNotFoundError
            If no document has this id.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete a document and all of its chunks.  Returns ``False`` if absent."""

    @abstractmethod
    async def reset_stale_processing(self) -> int:
        """Move every ``processing`` document to ``failed``; return how many moved."""

    # -- Chunks ---------------------------------------------------------------

    @abstractmethod
    async def insert_chunks(self, chunks: list[Chunk]) -> int:
        """Persist chunks; return the number written.

        Raises
        ------
        talon.utils.errors.StorageError
            If an embedding has the wrong dimension or the write fails.
        """

    @abstractmethod
    async def delete_chunks(self, document_id: str) -> int:
        """Delete every chunk of a document; return how many were removed."""

    @abstractmethod
    async def list_chunks(self, document_id: str) -> list[Chunk]:
        """Return a document's chunks in index order."""

    @abstractmethod
    async def search_chunks(
        self,
        query_vector: list[float],
        threshold: float,
        top_k: int,
    ) -> list[RetrievalResult]:
        """Similarity-search chunks whose parent document is ``completed``.

        Raises
        ------
        talon.utils.errors.RetrievalError
            If the search backend fails.
        """

    # -- Knowledge entries ---------------------------------------------------

    @abstractmethod
    async def insert_knowledge_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Persist a knowledge entry and return it."""

    @abstractmethod
    async def list_knowledge_entries(self, owner: str | None = None) -> list[KnowledgeEntry]:
        """Return knowledge entries (optionally for one owner), newest first."""

    @abstractmethod
    async def delete_knowledge_entry(self, entry_id: str) -> bool:
        """Delete a knowledge entry.  Returns ``False`` if absent."""

    @abstractmethod
    async def search_knowledge(
        self,
        query_vector: list[float],
        threshold: float,
        top_k: int,
    ) -> list[RetrievalResult]:
        """Similarity-search knowledge entries (no status restriction).

        Raises
        ------
        talon.utils.errors.RetrievalError
            If the search backend fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""

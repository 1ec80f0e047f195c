"""Public interface definitions for all external collaborators.

Every external service TALON depends on is accessed through the abstract
base classes in this package.  Concrete adapters live in
``talon/providers/`` and are wired together in ``talon/main.py``.

    Interface            ->  Concrete implementations (in talon/providers/)
    -------------------------------------------------------------------
    IEmbeddingProvider   ->  OpenAIEmbeddingProvider
    ILLMProvider         ->  OpenAILLMProvider, AnthropicLLMProvider
    IKnowledgeStore      ->  SQLiteKnowledgeStore
    IDocumentConverter   ->  UnstructuredConverter
    IFileStorage         ->  LocalFileStorage
    IWebPageProvider     ->  HttpxWebPageProvider
"""

from talon.interfaces.document_converter import IDocumentConverter
from talon.interfaces.embedding_provider import IEmbeddingProvider
from talon.interfaces.file_storage import IFileStorage
from talon.interfaces.knowledge_store import IKnowledgeStore
from talon.interfaces.llm_provider import ILLMProvider
from talon.interfaces.web_page_provider import IWebPageProvider, WebPage

__all__ = [
    "IDocumentConverter",
    "IEmbeddingProvider",
    "IFileStorage",
    "IKnowledgeStore",
    "ILLMProvider",
    "IWebPageProvider",
    "WebPage",
]

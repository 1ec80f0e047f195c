"""Knowledge store implementations."""

from talon.providers.knowledge_store.sqlite_knowledge_store import SQLiteKnowledgeStore

__all__ = ["SQLiteKnowledgeStore"]

"""Embedding provider implementations.

    OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims) through any
    OpenAI-compatible embeddings endpoint.
"""

from talon.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]

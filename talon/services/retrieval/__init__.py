"""Query-time retrieval and context assembly."""

from talon.services.retrieval.assembler import RetrievalAssembler, render_context

__all__ = ["RetrievalAssembler", "render_context"]

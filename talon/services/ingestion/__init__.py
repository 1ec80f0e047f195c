"""Document ingestion for the TALON knowledge base.

Pipeline stages overview:

1. **Extract** (talon.services.extraction / TextExtractor) -- recovers text
   from the uploaded bytes, with per-format fallback chains.

2. **Chunk** (chunker.py / TextChunker) -- splits text into overlapping,
   boundary-aware spans; Markdown input is pre-split at headings.

3. **Embed** (embedder.py / Embedder) -- truncates, embeds in paced
   concurrent groups, and checks vector dimensions.

4. **Store** (via IKnowledgeStore) -- replaces the document's chunks and
   records the status transition.

The IngestionPipeline class (pipeline.py) orchestrates all four stages and
also creates standalone knowledge entries from URLs and manual notes.
"""

from talon.services.ingestion.chunker import TextChunker
from talon.services.ingestion.embedder import Embedder
from talon.services.ingestion.pipeline import IngestionPipeline, derive_title

__all__ = [
    "Embedder",
    "IngestionPipeline",
    "TextChunker",
    "derive_title",
]

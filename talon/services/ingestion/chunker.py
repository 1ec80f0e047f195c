"""Text chunking with overlapping windows and structure-aware pre-splitting.

Splits extracted text into :class:`~talon.models.documents.TextSpan` objects
carrying the trimmed content and the ``[start_offset, end_offset)`` window it
was cut from in the source text.

Two strategies share one windowing core:

1. **Window chunking** -- greedy fixed-size windows.  An interior window end
   snaps back to the nearest sentence terminator or newline (or, failing
   that, whitespace), but only if the snapped end stays at or beyond
   ``start + max_size * min_snap_ratio``; otherwise the hard cut is kept.
   The next window starts at ``max(start + 1, end - overlap)``, so progress
   is guaranteed even when ``overlap >= max_size``.

2. **Markdown chunking** -- for text carrying ``#``/``##``/``###`` headings.
   The text is first split at heading lines so a section never shares a
   chunk with the next heading.  Sections that fit become one chunk;
   oversized sections are packed paragraph by paragraph (blank-line
   separated) with tail-paragraph overlap, and only a single paragraph
   larger than ``max_size`` falls back to window chunking.

No emitted span is empty after trimming, and every span has
``start_offset < end_offset``.
"""

from __future__ import annotations

import re

import structlog

from talon.config.tuning import ChunkingConfig
from talon.models.documents import TextSpan

logger = structlog.get_logger(logger_name=__name__)

_HEADING_RE = re.compile(r"^#{1,3}\s", re.MULTILINE)
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")

# Preferred snap targets first; whitespace is the last resort.
_SENTENCE_BOUNDARIES = (".", "!", "?", "\n")
_WORD_BOUNDARIES = (" ", "\t")


def has_markdown_structure(text: str) -> bool:
    """Return ``True`` if *text* contains at least one level 1-3 heading line."""
    return _HEADING_RE.search(text) is not None


class TextChunker:
    """Splits text into overlapping, boundary-aware spans.

    Parameters
    ----------
    config:
        Window size, overlap and snap ratio.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[TextSpan]:
        """Chunk *text*, using the Markdown strategy when headings are present."""
        if not text or not text.strip():
            return []

        if has_markdown_structure(text):
            spans = self.chunk_markdown(text)
            strategy = "markdown"
        else:
            spans = self.chunk_windows(text)
            strategy = "window"

        logger.debug(
            "chunking_complete",
            strategy=strategy,
            num_chunks=len(spans),
            text_length=len(text),
        )
        return spans

    def chunk_windows(self, text: str, lo: int = 0, hi: int | None = None) -> list[TextSpan]:
        """Window-chunk ``text[lo:hi]``; offsets are relative to the full *text*."""
        hi = len(text) if hi is None else hi
        max_size = self._config.max_size

        if hi <= lo:
            return []
        if hi - lo <= max_size:
            span = self._make_span(text, lo, hi)
            return [span] if span else []

        spans: list[TextSpan] = []
        start = lo
        while start < hi:
            end = min(start + max_size, hi)
            if end < hi:
                end = self._snap_end(text, start, end)

            span = self._make_span(text, start, end)
            if span:
                spans.append(span)

            if end >= hi:
                break
            start = max(start + 1, end - self._config.overlap)

        return spans

    def chunk_markdown(self, text: str) -> list[TextSpan]:
        """Chunk Markdown-tagged *text* at heading, then paragraph boundaries."""
        if not text or not text.strip():
            return []

        boundaries = [m.start() for m in _HEADING_RE.finditer(text)]
        if not boundaries or boundaries[0] != 0:
            boundaries.insert(0, 0)
        boundaries.append(len(text))

        spans: list[TextSpan] = []
        for sec_start, sec_end in zip(boundaries, boundaries[1:]):
            if not text[sec_start:sec_end].strip():
                continue
            if sec_end - sec_start <= self._config.max_size:
                span = self._make_span(text, sec_start, sec_end)
                if span:
                    spans.append(span)
            else:
                spans.extend(self._chunk_paragraphs(text, sec_start, sec_end))
        return spans

    # ------------------------------------------------------------------
    # Boundary snapping
    # ------------------------------------------------------------------

    def _snap_end(self, text: str, start: int, end: int) -> int:
        """Pull an interior window end back to a natural boundary when acceptable."""
        floor = start + self._config.max_size * self._config.min_snap_ratio
        for boundary_chars in (_SENTENCE_BOUNDARIES, _WORD_BOUNDARIES):
            pos = max(text.rfind(ch, start, end) for ch in boundary_chars)
            # Cut just after the boundary character.
            if pos >= 0 and pos + 1 >= floor:
                return pos + 1
        return end

    # ------------------------------------------------------------------
    # Paragraph packing
    # ------------------------------------------------------------------

    @staticmethod
    def _paragraph_spans(text: str, lo: int, hi: int) -> list[tuple[int, int]]:
        """Return ``(start, end)`` of each non-blank paragraph in ``text[lo:hi]``."""
        paragraphs: list[tuple[int, int]] = []
        cursor = lo
        region = text[lo:hi]
        for match in _PARAGRAPH_BREAK_RE.finditer(region):
            para_end = lo + match.start()
            if text[cursor:para_end].strip():
                paragraphs.append((cursor, para_end))
            cursor = lo + match.end()
        if text[cursor:hi].strip():
            paragraphs.append((cursor, hi))
        return paragraphs

    def _chunk_paragraphs(self, text: str, lo: int, hi: int) -> list[TextSpan]:
        """Pack paragraphs of an oversized section into chunks with overlap."""
        max_size = self._config.max_size
        spans: list[TextSpan] = []
        group: list[tuple[int, int]] = []

        def flush() -> None:
            span = self._make_span(text, group[0][0], group[-1][1])
            if span:
                spans.append(span)

        for para_start, para_end in self._paragraph_spans(text, lo, hi):
            if para_end - para_start > max_size:
                if group:
                    flush()
                    group = []
                spans.extend(self.chunk_windows(text, para_start, para_end))
                continue

            if group and para_end - group[0][0] > max_size:
                flush()
                group = self._overlap_tail(group)
                # Drop the carried tail if it cannot share a chunk with this paragraph.
                if group and para_end - group[0][0] > max_size:
                    group = []

            group.append((para_start, para_end))

        if group:
            flush()
        return spans

    def _overlap_tail(self, group: list[tuple[int, int]]) -> list[tuple[int, int]]:
        """Return the trailing paragraphs of *group* spanning at most ``overlap`` chars."""
        tail: list[tuple[int, int]] = []
        last_end = group[-1][1]
        for para in reversed(group):
            if last_end - para[0] > self._config.overlap:
                break
            tail.insert(0, para)
        return tail

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _make_span(text: str, start: int, end: int) -> TextSpan | None:
        content = text[start:end].strip()
        if not content:
            return None
        return TextSpan(content=content, start_offset=start, end_offset=end)

"""Local extraction strategies for binary document formats.

Each strategy makes one attempt at recovering text from raw bytes and
reports whether the result is *sufficient*; none of them raises for
unparseable input.  :class:`~talon.services.extraction.text_extractor.TextExtractor`
tries an ordered list of strategies per file type and takes the first
sufficient result:

    structural (format-aware)  ->  permissive decode  ->  placeholder

Structural extraction is best-effort: it scans container internals (PDF
text operators, Office Open XML parts, UTF-16 runs in legacy OLE files)
with regular expressions rather than full parsers, and relies on the
readable-character threshold to hand off to the next strategy when it
recovers too little.
"""

from __future__ import annotations

import html
import io
import re
import string
import zipfile
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from talon.config.tuning import ExtractionConfig

logger = structlog.get_logger(logger_name=__name__)

_PRINTABLE = frozenset(string.printable)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufffd]")
_WHITESPACE_RE = re.compile(r"\s+")


def readable_chars(text: str) -> int:
    """Count alphanumeric characters in *text*."""
    return sum(1 for ch in text if ch.isalnum())


def printable_ratio(text: str) -> float:
    """Fraction of *text* made of printable ASCII characters."""
    if not text:
        return 0.0
    return sum(1 for ch in text if ch in _PRINTABLE) / len(text)


def file_extension(filename: str) -> str:
    """Lower-case extension of *filename* without the dot, or ``""``."""
    name = filename.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True)
class StrategyOutcome:
    """Result of one extraction attempt."""

    strategy: str
    text: str
    sufficient: bool


class ExtractionStrategy(ABC):
    """One step of a fallback chain."""

    name: str = "strategy"

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self._config = config or ExtractionConfig()

    @abstractmethod
    def attempt(self, data: bytes, filename: str) -> StrategyOutcome:
        """Try to recover text; never raises for malformed input."""

    def _outcome(self, text: str) -> StrategyOutcome:
        text = text.strip()
        sufficient = readable_chars(text) >= self._config.min_readable_chars
        return StrategyOutcome(strategy=self.name, text=text, sufficient=sufficient)

    def _insufficient(self) -> StrategyOutcome:
        return StrategyOutcome(strategy=self.name, text="", sufficient=False)


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


class PyMuPDFStrategy(ExtractionStrategy):
    """Page-by-page text extraction through PyMuPDF."""

    name = "pymupdf"

    def attempt(self, data: bytes, filename: str) -> StrategyOutcome:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                pages = [page.get_text("text").strip() for page in doc]
        except (RuntimeError, ValueError, NotImplementedError, zlib.error) as exc:
            logger.debug("pymupdf_open_failed", filename=filename, error=str(exc))
            return self._insufficient()
        return self._outcome("\n\n".join(p for p in pages if p))


_PDF_STREAM_RE = re.compile(rb"stream\r?\n(.*?)\r?\n?endstream", re.DOTALL)
_PDF_LITERAL = rb"\((?:\\.|[^\\()])*\)"
_PDF_TEXT_OP_RE = re.compile(
    rb"(?P<tj>" + _PDF_LITERAL + rb")\s*(?:Tj|'|\")"
    rb"|\[(?P<tj_array>(?:" + _PDF_LITERAL + rb"|[^\]\(])*)\]\s*TJ"
    rb"|(?P<break>\bET\b|\bT\*|\bTd\b|\bTD\b)"
)
_PDF_ARRAY_STRING_RE = re.compile(_PDF_LITERAL)
_PDF_ESCAPES = {
    b"n": b"\n",
    b"r": b"\r",
    b"t": b"\t",
    b"b": b"\b",
    b"f": b"\f",
    b"(": b"(",
    b")": b")",
    b"\\": b"\\",
}
_PDF_ESCAPE_RE = re.compile(rb"\\([0-7]{1,3}|.)", re.DOTALL)


def _unescape_pdf_literal(literal: bytes) -> str:
    """Decode a ``(...)`` PDF string literal into text."""
    body = literal[1:-1]

    def _replace(match: re.Match[bytes]) -> bytes:
        token = match.group(1)
        if token[:1].isdigit():
            return bytes([int(token, 8) & 0xFF])
        return _PDF_ESCAPES.get(token, token)

    return _PDF_ESCAPE_RE.sub(_replace, body).decode("latin-1")


class PdfTextOperatorStrategy(ExtractionStrategy):
    """Scan content streams for text-showing operators (``Tj``, ``TJ``, ``'``, ``"``).

    Flate-compressed streams are inflated first; streams using other
    filters are scanned as-is and usually contribute nothing.
    """

    name = "pdf_text_operators"

    def attempt(self, data: bytes, filename: str) -> StrategyOutcome:
        if not data.startswith(b"%PDF"):
            return self._insufficient()

        pieces: list[str] = []
        for stream in self._streams(data):
            pieces.append(self._scan(stream))
        text = "\n".join(p for p in pieces if p.strip())
        text = "\n".join(_WHITESPACE_RE.sub(" ", line).strip() for line in text.splitlines())
        return self._outcome(re.sub(r"\n{2,}", "\n", text))

    @staticmethod
    def _streams(data: bytes) -> list[bytes]:
        streams: list[bytes] = []
        for match in _PDF_STREAM_RE.finditer(data):
            raw = match.group(1)
            try:
                streams.append(zlib.decompressobj().decompress(raw))
            except zlib.error:
                streams.append(raw)
        return streams

    @staticmethod
    def _scan(stream: bytes) -> str:
        out: list[str] = []
        for match in _PDF_TEXT_OP_RE.finditer(stream):
            if match.group("tj") is not None:
                out.append(_unescape_pdf_literal(match.group("tj")))
            elif match.group("tj_array") is not None:
                parts = _PDF_ARRAY_STRING_RE.findall(match.group("tj_array"))
                out.append("".join(_unescape_pdf_literal(p) for p in parts))
            else:
                out.append("\n")
        return " ".join(out)


# ---------------------------------------------------------------------------
# Office Open XML (docx / xlsx / pptx)
# ---------------------------------------------------------------------------

_W_PARAGRAPH_RE = re.compile(r"<w:p[\s>].*?</w:p>", re.DOTALL)
_W_TEXT_RE = re.compile(r"<w:t(?:\s[^>]*)?>(.*?)</w:t>|<w:tab/>", re.DOTALL)
_A_PARAGRAPH_RE = re.compile(r"<a:p>.*?</a:p>|<a:p\s.*?</a:p>", re.DOTALL)
_A_TEXT_RE = re.compile(r"<a:t(?:\s[^>]*)?>(.*?)</a:t>", re.DOTALL)
_SI_RE = re.compile(r"<si>(.*?)</si>", re.DOTALL)
_T_RE = re.compile(r"<t(?:\s[^>]*)?>(.*?)</t>", re.DOTALL)
_ROW_RE = re.compile(r"<row[\s>].*?</row>", re.DOTALL)
_CELL_RE = re.compile(r"<c\s([^>]*?)(?:/>|>(.*?)</c>)", re.DOTALL)
_V_RE = re.compile(r"<v>(.*?)</v>", re.DOTALL)
_SLIDE_NAME_RE = re.compile(r"ppt/slides/slide(\d+)\.xml$")
_SHEET_NAME_RE = re.compile(r"xl/worksheets/sheet(\d+)\.xml$")


def _numbered_parts(archive: zipfile.ZipFile, pattern: re.Pattern[str]) -> list[tuple[int, str]]:
    """Return ``(number, name)`` for archive members matching *pattern*, in numeric order."""
    parts: list[tuple[int, str]] = []
    for name in archive.namelist():
        match = pattern.search(name)
        if match:
            parts.append((int(match.group(1)), name))
    return sorted(parts)


class OfficeOpenXmlStrategy(ExtractionStrategy):
    """Read text runs out of the XML parts of a zip-based Office file.

    - ``.docx``: ``<w:t>`` runs in ``word/document.xml``, one line per paragraph
    - ``.xlsx``: worksheet cells resolved against the shared-string table,
      one line per row with cells joined by ``" | "``
    - ``.pptx``: ``<a:t>`` runs per slide, in slide order
    """

    name = "office_open_xml"

    def attempt(self, data: bytes, filename: str) -> StrategyOutcome:
        ext = file_extension(filename)
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                if ext == "docx":
                    text = self._docx(archive)
                elif ext == "xlsx":
                    text = self._xlsx(archive)
                elif ext == "pptx":
                    text = self._pptx(archive)
                else:
                    return self._insufficient()
        except (
            zipfile.BadZipFile,
            zlib.error,
            EOFError,
            KeyError,
            UnicodeDecodeError,
            RuntimeError,
            NotImplementedError,
            ValueError,
        ) as exc:
            logger.debug("office_xml_read_failed", filename=filename, error=str(exc))
            return self._insufficient()
        return self._outcome(text)

    @staticmethod
    def _read(archive: zipfile.ZipFile, name: str) -> str:
        return archive.read(name).decode("utf-8")

    def _docx(self, archive: zipfile.ZipFile) -> str:
        xml = self._read(archive, "word/document.xml")
        lines: list[str] = []
        for para in _W_PARAGRAPH_RE.findall(xml):
            runs = [
                html.unescape(m.group(1)) if m.group(1) is not None else "\t"
                for m in _W_TEXT_RE.finditer(para)
            ]
            line = "".join(runs).strip()
            if line:
                lines.append(line)
        return "\n".join(lines)

    def _xlsx(self, archive: zipfile.ZipFile) -> str:
        shared: list[str] = []
        if "xl/sharedStrings.xml" in archive.namelist():
            xml = self._read(archive, "xl/sharedStrings.xml")
            shared = [
                html.unescape("".join(_T_RE.findall(item))) for item in _SI_RE.findall(xml)
            ]

        sheets = _numbered_parts(archive, _SHEET_NAME_RE)
        lines: list[str] = []
        for _, sheet_name in sheets:
            xml = self._read(archive, sheet_name)
            for row in _ROW_RE.findall(xml):
                cells = [self._cell_value(attrs, body or "", shared) for attrs, body in _CELL_RE.findall(row)]
                cells = [c for c in cells if c]
                if cells:
                    lines.append(" | ".join(cells))

        # Without worksheets, the shared-string table alone still carries the text.
        if not lines and shared:
            lines = [s for s in shared if s.strip()]
        return "\n".join(lines)

    @staticmethod
    def _cell_value(attrs: str, body: str, shared: list[str]) -> str:
        if 't="inlineStr"' in attrs:
            return html.unescape("".join(_T_RE.findall(body))).strip()
        value_match = _V_RE.search(body)
        if not value_match:
            return ""
        value = html.unescape(value_match.group(1)).strip()
        if 't="s"' in attrs:
            try:
                return shared[int(value)].strip()
            except (ValueError, IndexError):
                return ""
        return value

    def _pptx(self, archive: zipfile.ZipFile) -> str:
        slides = _numbered_parts(archive, _SLIDE_NAME_RE)
        blocks: list[str] = []
        for _, slide_name in slides:
            xml = self._read(archive, slide_name)
            lines = [
                html.unescape("".join(_A_TEXT_RE.findall(para))).strip()
                for para in _A_PARAGRAPH_RE.findall(xml)
            ]
            block = "\n".join(line for line in lines if line)
            if block:
                blocks.append(block)
        return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Legacy binary Office (doc / xls / ppt)
# ---------------------------------------------------------------------------

_UTF16_RUN_RE = re.compile(rb"(?:[\x20-\x7e\t\r\n]\x00){4,}")
_ASCII_RUN_RE = re.compile(rb"[\x20-\x7e\t\r\n]{6,}")


class LegacyBinaryTextStrategy(ExtractionStrategy):
    """Collect UTF-16LE and ASCII text runs from legacy OLE compound files.

    Whichever encoding recovers more readable characters wins.  Runs without
    any letter are dropped to keep stream names and numeric tables out.
    """

    name = "legacy_binary_text"

    def attempt(self, data: bytes, filename: str) -> StrategyOutcome:
        utf16_runs = [m.group(0).decode("utf-16-le") for m in _UTF16_RUN_RE.finditer(data)]
        ascii_runs = [m.group(0).decode("ascii") for m in _ASCII_RUN_RE.finditer(data)]

        best = max(
            (self._join(utf16_runs), self._join(ascii_runs)),
            key=readable_chars,
        )
        return self._outcome(best)

    @staticmethod
    def _join(runs: list[str]) -> str:
        kept = [
            _WHITESPACE_RE.sub(" ", run).strip()
            for run in runs
            if any(ch.isalpha() for ch in run)
        ]
        return "\n".join(r for r in kept if r)


# ---------------------------------------------------------------------------
# Generic fallbacks
# ---------------------------------------------------------------------------


class PermissiveDecodeStrategy(ExtractionStrategy):
    """Decode as UTF-8 ignoring errors, strip control characters, collapse whitespace.

    Besides the readable-character threshold, the result must be mostly
    printable ASCII so that decoded compressed binary is not mistaken for text.
    """

    name = "permissive_decode"

    def attempt(self, data: bytes, filename: str) -> StrategyOutcome:
        decoded = data.decode("utf-8", errors="ignore")
        cleaned = _CONTROL_CHARS_RE.sub(" ", decoded)
        text = _WHITESPACE_RE.sub(" ", cleaned).strip()
        outcome = self._outcome(text)
        if outcome.sufficient and printable_ratio(text) < self._config.min_printable_ratio:
            return StrategyOutcome(strategy=self.name, text=text, sufficient=False)
        return outcome


class PlaceholderStrategy(ExtractionStrategy):
    """Synthesize a description of the file; always sufficient."""

    name = "placeholder"

    def attempt(self, data: bytes, filename: str) -> StrategyOutcome:
        ext = file_extension(filename).upper() or "UNKNOWN"
        text = (
            f"Document: {filename}\n"
            f"File Size: {len(data)} bytes\n"
            f"Type: {ext} document\n\n"
            "This document was uploaded successfully but its content could not be "
            "extracted automatically. Configure a document conversion service to "
            "enable full parsing of this file type."
        )
        return StrategyOutcome(strategy=self.name, text=text, sufficient=True)

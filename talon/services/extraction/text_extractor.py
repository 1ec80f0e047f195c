"""Dispatching text extractor for uploaded files.

Turns the raw bytes of a named file into plain or Markdown text.  Dispatch
is by lower-case file extension:

- ``txt``/``md``/``markdown``/``json`` -- decoded as UTF-8 verbatim
- ``csv`` -- one ``Table Headers:`` line, then one ``Row N:`` line per record
- ``html``/``htm`` -- visible text with script and style blocks removed
- ``pdf`` and the Office formats -- an ordered chain of
  :mod:`~talon.services.extraction.strategies`, ending in a placeholder so
  ingestion never fails only because deep parsing was unavailable
- anything else -- strict UTF-8 decode; undecodable bytes raise

When an :class:`~talon.interfaces.document_converter.IDocumentConverter` is
configured, it is consulted first for the formats listed in
``ExtractionConfig.conversion_extensions``.  Any converter failure is logged
and extraction silently continues with the local chain.
"""

from __future__ import annotations

import asyncio
import csv
import io

import structlog

from talon.config.tuning import ExtractionConfig
from talon.interfaces.document_converter import IDocumentConverter
from talon.services.extraction.strategies import (
    ExtractionStrategy,
    LegacyBinaryTextStrategy,
    OfficeOpenXmlStrategy,
    PdfTextOperatorStrategy,
    PermissiveDecodeStrategy,
    PlaceholderStrategy,
    PyMuPDFStrategy,
    file_extension,
)
from talon.utils.errors import ExtractionError, TalonError
from talon.utils.html_text import html_to_visible_text

logger = structlog.get_logger(logger_name=__name__)

_PLAIN_TEXT_EXTENSIONS = frozenset({"txt", "md", "markdown", "json"})
_HTML_EXTENSIONS = frozenset({"html", "htm"})


def format_csv(text: str) -> str:
    """Render CSV text as a header line followed by numbered row lines.

    Blank records are skipped and do not consume a row number.

    >>> format_csv("a,b\\n1,2")
    'Table Headers: a, b\\n\\nRow 1: 1 | 2'
    """
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if not rows:
        return ""

    header = [cell.strip() for cell in rows[0]]
    lines = [f"Row {n}: {' | '.join(cell.strip() for cell in row)}" for n, row in enumerate(rows[1:], start=1)]
    result = f"Table Headers: {', '.join(header)}"
    if lines:
        result += "\n\n" + "\n".join(lines)
    return result


class TextExtractor:
    """Converts raw file bytes into text, with per-format fallback chains.

    Parameters
    ----------
    config:
        Readable-character threshold, printable ratio and the set of
        extensions routed to the conversion service.
    converter:
        Optional higher-fidelity conversion service tried first.
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        converter: IDocumentConverter | None = None,
    ) -> None:
        self._config = config or ExtractionConfig()
        self._converter = converter

        pdf_chain: list[ExtractionStrategy] = [
            PyMuPDFStrategy(self._config),
            PdfTextOperatorStrategy(self._config),
        ]
        ooxml_chain: list[ExtractionStrategy] = [OfficeOpenXmlStrategy(self._config)]
        legacy_chain: list[ExtractionStrategy] = [LegacyBinaryTextStrategy(self._config)]
        tail = [PermissiveDecodeStrategy(self._config), PlaceholderStrategy(self._config)]

        self._chains: dict[str, list[ExtractionStrategy]] = {
            "pdf": pdf_chain + tail,
            "docx": ooxml_chain + tail,
            "xlsx": ooxml_chain + tail,
            "pptx": ooxml_chain + tail,
            "doc": legacy_chain + tail,
            "xls": legacy_chain + tail,
            "ppt": legacy_chain + tail,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, data: bytes, filename: str) -> str:
        """Extract text from *data*, dispatching on *filename*'s extension.

        Raises
        ------
        ExtractionError
            If the bytes of an unknown file type are not valid UTF-8, or if
            the recovered text is empty or whitespace only.
        """
        ext = file_extension(filename)

        text = await self._try_converter(data, filename, ext)
        if text is None:
            text = await asyncio.to_thread(self._extract_locally, data, filename, ext)

        if not text.strip():
            raise ExtractionError(message=f"No readable content in {filename}")

        logger.info(
            "text_extracted",
            filename=filename,
            extension=ext or None,
            text_length=len(text),
        )
        return text

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _try_converter(self, data: bytes, filename: str, ext: str) -> str | None:
        if self._converter is None or not self._converter.is_available():
            return None
        if ext not in self._config.conversion_extensions:
            return None

        try:
            markdown = await self._converter.convert(data, filename)
        except TalonError as exc:
            logger.warning(
                "conversion_service_failed",
                filename=filename,
                provider=self._converter.get_provider_name(),
                error=str(exc),
            )
            return None
        except Exception as exc:
            logger.warning(
                "conversion_service_unexpected_error",
                filename=filename,
                provider=self._converter.get_provider_name(),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

        if not markdown.strip():
            logger.warning("conversion_service_empty", filename=filename)
            return None
        return markdown

    def _extract_locally(self, data: bytes, filename: str, ext: str) -> str:
        if ext in _PLAIN_TEXT_EXTENSIONS:
            return data.decode("utf-8-sig", errors="replace")
        if ext == "csv":
            return format_csv(data.decode("utf-8-sig", errors="replace"))
        if ext in _HTML_EXTENSIONS:
            return html_to_visible_text(data.decode("utf-8", errors="replace"))

        chain = self._chains.get(ext)
        if chain is not None:
            return self._run_chain(chain, data, filename)

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ExtractionError(
                message=f"Unsupported file type and not valid UTF-8: {filename}",
            ) from exc

    @staticmethod
    def _run_chain(chain: list[ExtractionStrategy], data: bytes, filename: str) -> str:
        for strategy in chain:
            outcome = strategy.attempt(data, filename)
            if outcome.sufficient:
                logger.debug(
                    "extraction_strategy_selected", filename=filename, strategy=outcome.strategy
                )
                return outcome.text
            logger.debug("extraction_strategy_insufficient", filename=filename, strategy=strategy.name)

        raise ExtractionError(message=f"No extraction strategy recovered text from {filename}")

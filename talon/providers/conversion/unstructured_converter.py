"""Unstructured.io document conversion adapter.

Posts the raw file to the Unstructured general partition endpoint and turns
the returned element list into Markdown, keeping titles, headers, list
items and tables as structure so the Markdown-aware chunker can respect
them.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from talon.interfaces.document_converter import IDocumentConverter
from talon.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_URL = "https://api.unstructured.io/general/v0/general"

# Element type -> Markdown prefix for block elements.
_HEADING_PREFIXES: dict[str, str] = {
    "Title": "# ",
    "Header": "## ",
    "SubHeader": "### ",
}


def elements_to_markdown(elements: list[dict[str, Any]]) -> str:
    """Render Unstructured elements as Markdown.

    Headings become ``#``/``##``/``###`` lines, list items become ``- `` lines,
    and everything else (narrative text, tables, plain text) becomes a
    paragraph.  Elements without text are skipped.
    """
    parts: list[str] = []
    for element in elements:
        text = str(element.get("text") or "").strip()
        if not text:
            continue
        element_type = element.get("type", "")
        if element_type in _HEADING_PREFIXES:
            parts.append(f"{_HEADING_PREFIXES[element_type]}{text}\n\n")
        elif element_type == "ListItem":
            parts.append(f"- {text}\n")
        else:
            parts.append(f"{text}\n\n")
    return "".join(parts).strip()


class UnstructuredConverter(IDocumentConverter):
    """Converts uploaded files to Markdown through the Unstructured API.

    Parameters
    ----------
    api_key:
        Bearer key; an empty key makes the converter unavailable.
    http_client:
        Shared ``httpx.AsyncClient``.  Its timeout bounds every call.
    api_url:
        Partition endpoint URL.
    """

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient,
        api_url: str = _DEFAULT_URL,
    ) -> None:
        self._api_key = api_key
        self._client = http_client
        self._api_url = api_url

    # ------------------------------------------------------------------
    # IDocumentConverter implementation
    # ------------------------------------------------------------------

    async def convert(self, data: bytes, filename: str) -> str:
        """Convert *data* to Markdown, raising :class:`ExtractionError` on any failure."""
        if not self.is_available():
            raise ExtractionError(
                message="Conversion service is not configured",
                provider_name=self.get_provider_name(),
            )

        name = filename.rsplit("/", 1)[-1]
        try:
            response = await self._client.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                files={"files": (name, data)},
                data={
                    "strategy": "hi_res",
                    "output_format": "text/markdown",
                    "chunking_strategy": "none",
                },
            )
            response.raise_for_status()
            elements = response.json()
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                message=f"Conversion service returned HTTP {exc.response.status_code}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"Conversion service request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise ExtractionError(
                message="Conversion service returned invalid JSON",
                provider_name=self.get_provider_name(),
            ) from exc

        if not isinstance(elements, list) or not all(isinstance(e, dict) for e in elements):
            raise ExtractionError(
                message="Conversion service returned an unexpected payload",
                provider_name=self.get_provider_name(),
            )

        markdown = elements_to_markdown(elements)
        if not markdown:
            raise ExtractionError(
                message="Conversion service produced no text",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "conversion_complete",
            filename=name,
            elements=len(elements),
            characters=len(markdown),
        )
        return markdown

    def get_provider_name(self) -> str:
        return "unstructured"

    def is_available(self) -> bool:
        return bool(self._api_key)

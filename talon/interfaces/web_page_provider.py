"""Abstract base class for fetching web pages as visible text.

Also defines :class:`WebPage`, the value object returned by providers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class WebPage:
    """Visible text recovered from a URL.

    ``text`` has script/style blocks and all tags removed, with runs of
    whitespace collapsed inside each line and blank lines dropped.
    """

    url: str
    text: str
    host: str = ""


# Concrete implementations: HttpxWebPageProvider
# Located in: talon/providers/web/
class IWebPageProvider(ABC):
    """Contract for URL fetching used by URL knowledge ingestion."""

    @abstractmethod
    async def fetch(self, url: str) -> WebPage:
        """Fetch *url* and return its visible text.

        Raises
        ------
        talon.utils.errors.SourceFetchError
            If the URL cannot be fetched or returns an error status.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier."""

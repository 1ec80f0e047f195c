"""Web page provider using httpx and BeautifulSoup.

Fetches a URL with a fixed identifying User-Agent, drops ``<script>`` and
``<style>`` blocks, strips every remaining tag, and returns the visible
text line by line.
"""

from __future__ import annotations

from urllib.parse import urlparse

import httpx
import structlog

from talon.interfaces.web_page_provider import IWebPageProvider, WebPage
from talon.utils.errors import SourceFetchError
from talon.utils.html_text import html_to_visible_text

logger = structlog.get_logger(logger_name=__name__)


class HttpxWebPageProvider(IWebPageProvider):
    """Fetches pages with httpx and extracts visible text with BeautifulSoup."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        user_agent: str = "TALON-Bot/1.0",
    ) -> None:
        self._client = http_client
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }

    # ------------------------------------------------------------------
    # IWebPageProvider implementation
    # ------------------------------------------------------------------

    async def fetch(self, url: str) -> WebPage:
        """Fetch *url* and return its visible text."""
        try:
            response = await self._client.get(url, headers=self._headers, follow_redirects=True)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise SourceFetchError(
                message=f"Timeout fetching {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise SourceFetchError(
                message=f"Failed to fetch URL: {exc.response.status_code} {exc.response.reason_phrase}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceFetchError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text = html_to_visible_text(response.text)
        host = urlparse(url).hostname or ""
        logger.info("web_page_fetched", url=url, host=host, text_length=len(text))
        return WebPage(url=url, text=text, host=host)

    def get_provider_name(self) -> str:
        return "web_page"

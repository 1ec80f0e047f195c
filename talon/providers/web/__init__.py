"""Web page fetching for URL knowledge ingestion."""

from talon.providers.web.httpx_web_page_provider import HttpxWebPageProvider

__all__ = ["HttpxWebPageProvider"]

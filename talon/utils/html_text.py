"""Visible-text extraction from HTML with BeautifulSoup."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"[ \t\r\f\v\xa0]+")


def html_to_visible_text(html: str) -> str:
    """Return the visible text of an HTML document.

    Script and style contents are removed entirely; whitespace runs inside a
    line collapse to one space and blank lines are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    raw = soup.get_text(separator="\n")
    lines = (_WHITESPACE_RE.sub(" ", line).strip() for line in raw.splitlines())
    return "\n".join(line for line in lines if line)

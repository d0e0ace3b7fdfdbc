"""
Single-page crawler: fetch a URL with httpx and reduce the HTML to readable text.
"""

import logging
import re

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; mcp-orchestrator/1.0)"
_STRIP_TAGS = ("script", "style", "noscript", "nav", "footer", "header", "aside", "form", "svg")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def html_to_text(html: str) -> tuple[str, str]:
    """Return (title, body_text) for an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    for tag in soup(_STRIP_TAGS):
        tag.decompose()
    root = soup.find("main") or soup.find("article") or soup.body or soup
    text = root.get_text("\n", strip=True)
    return title, _BLANK_LINES_RE.sub("\n\n", text).strip()


async def fetch_page(url: str, max_length: int = 5000, timeout: float = 15.0) -> dict:
    """
    Fetch url and return {url, title, content, truncated, status_code}.

    Raises httpx.HTTPError on network failures and non-2xx responses;
    raises ValueError for non-HTML content.
    """
    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        headers={"User-Agent": _USER_AGENT},
    ) as client:
        response = await client.get(url)
        response.raise_for_status()

    content_type = response.headers.get("content-type", "").lower()
    if content_type and "html" not in content_type and "text/plain" not in content_type:
        raise ValueError(f"Unsupported content type {content_type!r} at {url}")

    if "html" in content_type or not content_type:
        title, text = html_to_text(response.text)
    else:
        title, text = "", response.text.strip()

    truncated = len(text) > max_length
    if truncated:
        text = text[:max_length] + "…"
    logger.debug("Crawled %s (%d chars, truncated=%s)", url, len(text), truncated)
    return {
        "url": str(response.url),
        "title": title,
        "content": text,
        "truncated": truncated,
        "status_code": response.status_code,
    }

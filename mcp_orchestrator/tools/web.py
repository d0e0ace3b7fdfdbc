"""Web search and crawl tool executors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from ..models import ToolResult
from ..web import crawl, search

if TYPE_CHECKING:
    from .backends import ToolBackends

logger = logging.getLogger(__name__)


async def exec_search_web(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Search the web using DuckDuckGo."""
    query = str(inp.get("query", "")).strip()
    if not query:
        return ToolResult.fail("No search query provided.")
    max_results = max(1, min(int(inp.get("max_results", 5)), 10))
    results = await search.web_search(query, max_results=max_results)
    if not results:
        return ToolResult.fail("Search unavailable or no results. Try a different query.")
    return ToolResult.ok({"query": query, "results": results, "count": len(results)})


async def exec_crawl_page(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Fetch a page and return its readable text."""
    url = str(inp.get("url", "")).strip()
    if not url:
        return ToolResult.fail("No URL provided.")
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    max_length = max(200, min(int(inp.get("max_length", 5000)), 20000))

    try:
        page = await crawl.fetch_page(url, max_length=max_length, timeout=backends.crawl_timeout)
    except httpx.TimeoutException:
        return ToolResult.fail(f"Request to {url} timed out")
    except httpx.HTTPStatusError as e:
        return ToolResult.fail(f"HTTP {e.response.status_code}: {url}")
    except httpx.HTTPError as e:
        return ToolResult.fail(f"Could not fetch {url}: {e}")
    except ValueError as e:
        return ToolResult.fail(str(e))

    if not inp.get("extract_content", True):
        page = {k: v for k, v in page.items() if k != "content"}
    return ToolResult.ok(page)

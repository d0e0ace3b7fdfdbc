"""
DuckDuckGo web search wrapper.
No API key required; uses the ddgs package (formerly duckduckgo-search).
"""

import asyncio
import logging

from ddgs import DDGS

logger = logging.getLogger(__name__)


async def web_search(query: str, max_results: int = 5) -> list[dict]:
    """
    Return up to max_results text search results for query.
    Each result dict has: title, url, snippet.
    Returns [] on error (search unavailable, rate-limited, etc.)
    """
    def _sync() -> list[dict]:
        try:
            with DDGS() as ddgs:
                return list(ddgs.text(query, max_results=max_results))
        except Exception as e:
            logger.warning("DuckDuckGo search failed for %r: %s", query, e)
            return []

    raw = await asyncio.to_thread(_sync)
    return [normalise_result(r) for r in raw]


def normalise_result(r: dict) -> dict:
    """Map a ddgs hit (title/href/body) onto the title/url/snippet shape tools expose."""
    return {
        "title": r.get("title") or "(no title)",
        "url": r.get("href") or r.get("url") or "",
        "snippet": (r.get("body") or r.get("snippet") or "").strip(),
    }

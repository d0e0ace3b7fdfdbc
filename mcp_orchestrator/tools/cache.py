"""
Short-lived response cache for tool executions.

Entries are keyed by tool name + user id + canonical JSON of the parameters
and expire after a fixed TTL. Stale entries are swept lazily once the cache
grows past a size threshold; there is no background timer. Expired entries
are never served regardless of whether a sweep has run.

All access happens on the event loop thread with no await between lookup
and insert, so a plain dict is sufficient.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable

from ..models import ToolResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 100


@dataclass
class CacheEntry:
    result: ToolResult
    timestamp: float


def make_cache_key(tool_name: str, user_id: str, params: dict) -> str:
    """Composite key; parameter order does not matter."""
    serialised = json.dumps(params or {}, sort_keys=True, default=str, separators=(",", ":"))
    return f"{tool_name}_{user_id}_{serialised}"


class ResponseCache:
    """TTL cache with lazy, size-triggered eviction of stale entries."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.timestamp) < self.ttl_seconds

    def get(self, key: str) -> ToolResult | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if not self._is_fresh(entry):
            self._entries.pop(key, None)
            self.misses += 1
            return None
        self.hits += 1
        return entry.result

    def set(self, key: str, result: ToolResult) -> None:
        self._entries[key] = CacheEntry(result=result, timestamp=self._clock())
        if len(self._entries) > self.max_entries:
            self.sweep()

    def sweep(self) -> int:
        """Drop every stale entry. Returns the number removed."""
        stale = [k for k, e in self._entries.items() if not self._is_fresh(e)]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Response cache: evicted %d stale entries", len(stale))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}

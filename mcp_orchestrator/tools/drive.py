"""Drive tool executors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..models import ToolResult

if TYPE_CHECKING:
    from .backends import ToolBackends

logger = logging.getLogger(__name__)

_NOT_CONFIGURED = "Drive not configured."


async def exec_search_drive(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Find files by name or content."""
    if backends.drive is None:
        return ToolResult.fail(_NOT_CONFIGURED)
    query = str(inp.get("query", "")).strip()
    if not query:
        return ToolResult.fail("Please provide a search query.")
    max_results = max(1, min(int(inp.get("max_results", 10)), 50))
    files = await backends.drive.search(user_id, query, max_results)
    return ToolResult.ok({"query": query, "files": files, "count": len(files)})


async def exec_get_drive_file(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Fetch one file, including its text content where the provider exposes it."""
    if backends.drive is None:
        return ToolResult.fail(_NOT_CONFIGURED)
    file_id = str(inp.get("file_id", "")).strip()
    if not file_id:
        return ToolResult.fail("Please provide a file_id.")
    file = await backends.drive.get_file(user_id, file_id)
    return ToolResult.ok(file)

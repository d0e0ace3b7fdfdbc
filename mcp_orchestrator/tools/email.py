"""Mail tool executors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..models import ToolResult

if TYPE_CHECKING:
    from .backends import ToolBackends

logger = logging.getLogger(__name__)

_NOT_CONFIGURED = "Email not configured."


async def exec_get_emails(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Search mail with provider query syntax (empty query = most recent)."""
    if backends.mail is None:
        return ToolResult.fail(_NOT_CONFIGURED)
    query = str(inp.get("query", "") or "").strip()
    max_results = max(1, min(int(inp.get("max_results", 10)), 50))

    emails = await backends.mail.search(user_id, query, max_results)
    return ToolResult.ok({"query": query, "emails": emails, "count": len(emails)})


async def exec_get_last_ten_mails(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Fetch the ten most recent messages."""
    if backends.mail is None:
        return ToolResult.fail(_NOT_CONFIGURED)
    emails = await backends.mail.search(user_id, "", 10)
    return ToolResult.ok({"emails": emails, "count": len(emails)})

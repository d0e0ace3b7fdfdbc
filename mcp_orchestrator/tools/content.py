"""Content generation tool executor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..models import ToolResult

if TYPE_CHECKING:
    from .backends import ToolBackends

logger = logging.getLogger(__name__)

_SYSTEM = (
    "You are a writing assistant. Produce the requested content directly, "
    "in markdown, with no preamble."
)


async def exec_generate_content(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Draft content (notes, outlines, emails, reports) with the reasoning model."""
    if backends.claude is None:
        return ToolResult.fail("Content generation not configured.")
    prompt = str(inp.get("prompt", "")).strip()
    if not prompt:
        return ToolResult.fail("Please describe the content to generate.")
    content_format = str(inp.get("format", "")).strip()

    request = prompt if not content_format else f"{prompt}\n\nFormat: {content_format}"
    content = await backends.claude.complete(
        messages=[{"role": "user", "content": request}],
        system=_SYSTEM,
    )
    return ToolResult.ok({"prompt": prompt, "format": content_format or "markdown", "content": content.strip()})

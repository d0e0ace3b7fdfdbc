"""
Document tool executors and the local markdown document store.
"""

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import aiofiles

from ..models import ToolResult

if TYPE_CHECKING:
    from .backends import ToolBackends

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_DESTINATIONS = ("local", "google_drive", "both")
_MIME_TYPES = {"markdown": "text/markdown", "text": "text/plain", "html": "text/html"}
_EXTENSIONS = {"markdown": ".md", "text": ".txt", "html": ".html"}

_PROCESS_SYSTEM = (
    "You summarise documents. Return ONLY a JSON object with keys "
    '"summary" (a short paragraph) and "key_points" (an array of strings).'
)


def _slugify(title: str) -> str:
    slug = _SLUG_RE.sub("-", title.lower()).strip("-")
    return slug[:60] or "document"


class LocalDocumentStore:
    """Writes documents under a per-user directory on local disk."""

    def __init__(self, root_dir: str) -> None:
        self.root_dir = root_dir

    def _user_dir(self, user_id: str) -> str:
        safe_user = _SLUG_RE.sub("_", str(user_id)) or "anonymous"
        path = os.path.join(self.root_dir, safe_user)
        os.makedirs(path, exist_ok=True)
        return path

    async def save(self, user_id: str, title: str, content: str, doc_type: str = "markdown") -> dict:
        ext = _EXTENSIONS.get(doc_type, ".md")
        filename = f"{datetime.now(timezone.utc):%Y%m%d-%H%M%S}-{_slugify(title)}-{uuid.uuid4().hex[:6]}{ext}"
        path = os.path.join(self._user_dir(user_id), filename)
        async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
            await f.write(content)
        logger.info("Saved document %r to %s", title, path)
        return {"title": title, "path": path, "size": len(content.encode("utf-8"))}

    async def read(self, user_id: str, filename: str) -> str:
        path = os.path.join(self._user_dir(user_id), os.path.basename(filename))
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            return await f.read()


async def exec_create_document(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Create a document locally, on Drive, or both."""
    title = str(inp.get("title", "")).strip()
    content = str(inp.get("content", ""))
    doc_type = str(inp.get("type", "markdown")).strip().lower() or "markdown"
    destination = str(inp.get("destination", "local")).strip().lower() or "local"

    if not title:
        return ToolResult.fail("Please provide a document title.")
    if not content.strip():
        return ToolResult.fail("Please provide document content.")
    if destination not in _DESTINATIONS:
        return ToolResult.fail(f"Unknown destination {destination!r}; use one of {', '.join(_DESTINATIONS)}.")

    created: dict = {"title": title, "type": doc_type, "destination": destination}

    if destination in ("local", "both"):
        if backends.documents is None:
            return ToolResult.fail("Local document storage not configured.")
        created["local"] = await backends.documents.save(user_id, title, content, doc_type)

    if destination in ("google_drive", "both"):
        if backends.drive is None:
            if destination == "google_drive":
                return ToolResult.fail("Drive not configured.")
            logger.warning("Drive not configured; document %r saved locally only", title)
        else:
            created["drive"] = await backends.drive.create_file(
                user_id, title, content, _MIME_TYPES.get(doc_type, "text/plain")
            )

    return ToolResult.ok(created)


async def _load_document_text(backends: ToolBackends, user_id: str, inp: dict) -> tuple[str, str]:
    """Return (file_name, text) from inline text, a Drive file, or a local document."""
    if inp.get("text"):
        return str(inp.get("file_name") or "Inline text"), str(inp["text"])
    if inp.get("file_id"):
        if backends.drive is None:
            raise ValueError("Drive not configured.")
        file = await backends.drive.get_file(user_id, str(inp["file_id"]))
        return file.get("name", str(inp["file_id"])), file.get("content", "")
    if inp.get("file_name"):
        if backends.documents is None:
            raise ValueError("Local document storage not configured.")
        return str(inp["file_name"]), await backends.documents.read(user_id, str(inp["file_name"]))
    raise ValueError("Provide text, file_id or file_name.")


def _parse_summary(raw: str) -> dict:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"```(?:json)?", "", cleaned).strip()
    try:
        data = json.loads(cleaned)
        if isinstance(data, dict):
            return {
                "summary": str(data.get("summary", "")),
                "key_points": [str(p) for p in data.get("key_points", []) or []],
            }
    except json.JSONDecodeError:
        pass
    return {"summary": raw.strip(), "key_points": []}


async def exec_process_document(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Summarise a document and extract key points."""
    if backends.claude is None:
        return ToolResult.fail("Document processing not configured.")
    try:
        file_name, text = await _load_document_text(backends, user_id, inp)
    except (ValueError, OSError) as e:
        return ToolResult.fail(str(e))
    if not text.strip():
        return ToolResult.fail(f"Document '{file_name}' is empty.")

    raw = await backends.claude.complete(
        messages=[{"role": "user", "content": f'Summarise this document:\n\n"""{text[:12000]}"""'}],
        system=_PROCESS_SYSTEM,
        max_tokens=1024,
    )
    parsed = _parse_summary(raw)
    return ToolResult.ok({"file_name": file_name, **parsed, "length": len(text)})

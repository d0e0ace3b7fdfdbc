"""
Automatic tool chaining.

After the selected tool succeeds, should_chain() decides from the query and
the tool that ran whether a second, unrequested step is worth doing:

  search_web        + research language or a voice query -> crawl top hits
  mail/calendar/drive retrieval + "create ... doc/summary/report" -> create_document
  generate_content  + "save"                             -> create_document
  process_document  + "summarize" and "create"/"save"    -> create_document

ChainExecutor runs that step through the ToolExecutor. A chain that fails in
any way yields None, and the caller keeps the first tool's result.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..constants import (
    CALENDAR_RETRIEVAL_TOOLS,
    COMPREHENSIVE_PATTERNS,
    CONTENT_GENERATION_TOOL,
    CRAWL_MAX_LENGTH,
    CRAWL_TOOL,
    CREATE_DOCUMENT_TOOL,
    CREATE_OR_SAVE_PATTERN,
    CREATE_PATTERN,
    DATA_RETRIEVAL_TOOLS,
    DOCUMENT_NOUN_PATTERN,
    DOCUMENT_PROCESSING_TOOL,
    DRIVE_RETRIEVAL_TOOLS,
    EMAIL_RETRIEVAL_TOOLS,
    MAX_CRAWL_SITES_COMPREHENSIVE,
    MAX_CRAWL_SITES_DEFAULT,
    RESEARCH_PATTERNS,
    SAVE_PATTERNS,
    SUMMARIZE_PATTERN,
    WEB_SEARCH_TOOL,
)
from ..models import ToolResult, ToolSelection, UserContext
from ..utils.timezones import local_now

if TYPE_CHECKING:
    from ..tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


def _search_hits(result: ToolResult) -> list[dict]:
    if isinstance(result.data, dict):
        hits = result.data.get("results")
        if isinstance(hits, list):
            return hits
    return []


def should_chain(selection: ToolSelection, result: ToolResult, context: UserContext) -> bool:
    """Pure predicate: does this completed tool call warrant a second step?"""
    if not result.success or not result.data:
        return False
    tool = selection.tool or ""
    query = context.query

    if tool == WEB_SEARCH_TOOL:
        wants_depth = bool(RESEARCH_PATTERNS.search(query)) or context.preferences.is_voice_query
        return wants_depth and bool(_search_hits(result))

    if tool in DATA_RETRIEVAL_TOOLS:
        return bool(CREATE_PATTERN.search(query) and DOCUMENT_NOUN_PATTERN.search(query))

    if tool == CONTENT_GENERATION_TOOL:
        return bool(SAVE_PATTERNS.search(query))

    if tool == DOCUMENT_PROCESSING_TOOL:
        return bool(SUMMARIZE_PATTERN.search(query) and CREATE_OR_SAVE_PATTERN.search(query))

    return False


def crawl_budget(context: UserContext, available: int) -> int:
    """Number of search hits to crawl: up to 5 for comprehensive or voice queries, else 3."""
    comprehensive = bool(COMPREHENSIVE_PATTERNS.search(context.query)) or context.preferences.is_voice_query
    cap = MAX_CRAWL_SITES_COMPREHENSIVE if comprehensive else MAX_CRAWL_SITES_DEFAULT
    return min(available, cap)


# --------------------------------------------------------------------------- #
# Markdown builders for retrieval -> document chains                          #
# --------------------------------------------------------------------------- #

def _event_time(event: dict) -> str:
    start = event.get("start")
    if isinstance(start, dict):
        return start.get("dateTime") or start.get("date") or "Unknown"
    return str(start) if start else "Unknown"


def build_email_document(emails: list[dict], date_label: str) -> tuple[str, str]:
    title = f"Email Summary - {date_label}"
    lines = [f"# {title}", "", f"**Total Emails:** {len(emails)}", ""]
    for i, email in enumerate(emails, 1):
        snippet = email.get("snippet") or (email.get("content") or "")[:200] or "No content"
        lines += [
            f"## {i}. {email.get('subject') or 'No Subject'}",
            f"**From:** {email.get('sender') or email.get('from') or 'Unknown'}",
            f"**Date:** {email.get('date') or 'Unknown'}",
            f"**Summary:** {snippet}...",
            "",
        ]
    return title, "\n".join(lines)


def build_calendar_document(events: list[dict], date_label: str) -> tuple[str, str]:
    title = f"Calendar Summary - {date_label}"
    lines = [f"# {title}", "", f"**Total Events:** {len(events)}", ""]
    for i, event in enumerate(events, 1):
        lines += [
            f"## {i}. {event.get('summary') or event.get('title') or 'No Title'}",
            f"**Time:** {_event_time(event)}",
        ]
        if event.get("description"):
            lines.append(f"**Description:** {event['description']}")
        lines.append("")
    return title, "\n".join(lines)


def build_drive_document(files: list[dict], date_label: str) -> tuple[str, str]:
    title = f"Drive Files Summary - {date_label}"
    lines = ["# Google Drive Files Summary", ""]
    for i, file in enumerate(files, 1):
        lines += [
            f"## {i}. {file.get('name') or file.get('title') or 'Untitled'}",
            f"**Type:** {file.get('mime_type') or file.get('mimeType') or file.get('type') or 'Unknown'}",
        ]
        size = file.get("size")
        if size:
            try:
                lines.append(f"**Size:** {round(int(size) / 1024)} KB")
            except (TypeError, ValueError):
                pass
        if file.get("content"):
            lines.append(f"**Content Preview:** {str(file['content'])[:300]}...")
        lines.append("")
    return title, "\n".join(lines)


def build_summary_document(processed: dict) -> str:
    points = processed.get("key_points") or []
    bullet_list = "\n".join(f"- {p}" for p in points) or "None extracted"
    return (
        "# Document Summary\n\n"
        f"**Original:** {processed.get('file_name') or 'Unknown'}\n\n"
        f"**Summary:**\n{processed.get('summary', '')}\n\n"
        f"**Key Points:**\n{bullet_list}"
    )


class ChainExecutor:
    """Runs the second step of an automatic chain."""

    def __init__(self, executor: ToolExecutor, now: datetime | None = None) -> None:
        self._executor = executor
        self._now = now

    def _date_label(self, context: UserContext) -> str:
        return local_now(context.timezone, self._now).strftime("%Y-%m-%d")

    async def perform_chain(
        self,
        selection: ToolSelection,
        first_result: ToolResult,
        user_id: str,
        context: UserContext,
    ) -> ToolResult | None:
        """
        Run the chain step for `selection`. Returns a merged ToolResult whose
        data carries `chained_tools`, or None if nothing useful came of it.
        """
        tool = selection.tool or ""
        try:
            if tool == WEB_SEARCH_TOOL:
                return await self._search_then_crawl(first_result, user_id, context)
            if tool in DATA_RETRIEVAL_TOOLS:
                return await self._retrieval_then_document(tool, first_result, user_id, context)
            if tool == CONTENT_GENERATION_TOOL:
                return await self._content_then_document(first_result, user_id, context)
            if tool == DOCUMENT_PROCESSING_TOOL:
                return await self._processed_then_document(first_result, user_id, context)
        except Exception as e:
            logger.error("Tool chaining after %s failed: %s", tool, e, exc_info=True)
        return None

    async def _crawl_one(self, user_id: str, hit: dict, index: int) -> dict | None:
        url = hit.get("url")
        if not url:
            return None
        logger.debug("Crawling site %d: %s", index, url)
        result = await self._executor.execute(
            CRAWL_TOOL, user_id, {"url": url, "extract_content": True, "max_length": CRAWL_MAX_LENGTH}
        )
        if not result.success:
            logger.info("Crawl of %s failed: %s", url, result.error)
            return None
        return {"search_result": hit, "content": result.data, "crawl_index": index}

    async def _search_then_crawl(
        self, first_result: ToolResult, user_id: str, context: UserContext
    ) -> ToolResult | None:
        if CRAWL_TOOL not in self._executor.registry:
            logger.warning("Crawl tool not registered; skipping auto-crawl")
            return None
        hits = _search_hits(first_result)
        targets = hits[:crawl_budget(context, len(hits))]
        logger.info("Auto-crawling %d of %d search results", len(targets), len(hits))

        outcomes = await asyncio.gather(
            *(self._crawl_one(user_id, hit, i) for i, hit in enumerate(targets, 1)),
            return_exceptions=True,
        )
        crawled: list[dict[str, Any]] = []
        for hit, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Crawl of %s raised: %s", hit.get("url"), outcome)
            elif outcome is not None:
                crawled.append(outcome)

        logger.info("Crawled %d out of %d sites", len(crawled), len(targets))
        if not crawled:
            return None
        return ToolResult.ok({
            "search_results": first_result.data,
            "crawled_sites": crawled,
            "total_sites_crawled": len(crawled),
            "chained_tools": [WEB_SEARCH_TOOL, CRAWL_TOOL],
            "auto_crawled": True,
            "comprehensive_data": True,
        })

    async def _create_document(self, user_id: str, title: str, content: str) -> ToolResult | None:
        if not content.strip():
            return None
        result = await self._executor.execute(
            CREATE_DOCUMENT_TOOL, user_id,
            {"title": title, "content": content, "type": "markdown", "destination": "both"},
        )
        if not result.success:
            logger.info("Chained document creation failed: %s", result.error)
            return None
        return result

    async def _retrieval_then_document(
        self, tool: str, first_result: ToolResult, user_id: str, context: UserContext
    ) -> ToolResult | None:
        data = first_result.data if isinstance(first_result.data, dict) else {}
        label = self._date_label(context)
        if tool in EMAIL_RETRIEVAL_TOOLS:
            title, content = build_email_document(data.get("emails") or [], label)
        elif tool in CALENDAR_RETRIEVAL_TOOLS:
            title, content = build_calendar_document(data.get("events") or [], label)
        elif tool in DRIVE_RETRIEVAL_TOOLS:
            title, content = build_drive_document(data.get("files") or [data], label)
        else:
            return None

        created = await self._create_document(user_id, title, content)
        if created is None:
            return None
        return ToolResult.ok({
            "original_data": first_result.data,
            "created_document": created.data,
            "chained_tools": [tool, CREATE_DOCUMENT_TOOL],
        })

    async def _content_then_document(
        self, first_result: ToolResult, user_id: str, context: UserContext
    ) -> ToolResult | None:
        data = first_result.data if isinstance(first_result.data, dict) else {}
        content = str(data.get("content") or data.get("text") or "")
        created = await self._create_document(
            user_id, f"Generated Content - {self._date_label(context)}", content
        )
        if created is None:
            return None
        return ToolResult.ok({
            "generated_content": first_result.data,
            "saved_document": created.data,
            "chained_tools": [CONTENT_GENERATION_TOOL, CREATE_DOCUMENT_TOOL],
        })

    async def _processed_then_document(
        self, first_result: ToolResult, user_id: str, context: UserContext
    ) -> ToolResult | None:
        data = first_result.data if isinstance(first_result.data, dict) else {}
        if not data.get("summary"):
            return None
        created = await self._create_document(
            user_id, f"Document Summary - {self._date_label(context)}", build_summary_document(data)
        )
        if created is None:
            return None
        return ToolResult.ok({
            "processed_document": first_result.data,
            "summary_document": created.data,
            "chained_tools": [DOCUMENT_PROCESSING_TOOL, CREATE_DOCUMENT_TOOL],
        })

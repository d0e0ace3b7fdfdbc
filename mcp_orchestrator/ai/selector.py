"""
Tool selector: asks the reasoning model to map a query onto one registered
tool plus parameters, or onto a direct answer with no tool.

The model must answer with a single JSON object. Anything that does not
parse is a total selection failure: select() returns None and the pipeline
answers with its fixed "not sure how to help" message.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..config import settings
from ..models import ConversationContext, ToolMetadata, ToolSelection, UserContext

if TYPE_CHECKING:
    from ..tools.registry import ToolRegistry
    from .claude_client import ClaudeClient

logger = logging.getLogger(__name__)

_SYSTEM = (
    "You route personal-assistant requests to tools. "
    "Reply with ONE valid JSON object and nothing else."
)

_INSTRUCTIONS = """\
Your task:
1. Decide whether the query needs a tool or can be answered directly.
2. If a tool is best, pick exactly one from the list above and extract its parameters.
3. For real-time data (weather, news, prices, scores, recent events) use search_web.
4. If the user names a specific website or URL, use crawl_page.
5. If no tool fits but you can still help, put the answer in "directAnswer" and set "tool" to null.
6. If the request is unclear, ask for clarification in "directAnswer" rather than guessing.

Respond with valid JSON:
{
  "tool": "tool name or null",
  "confidence": 0-100,
  "parameters": {"only parameters the user actually gave or implied"},
  "reasoning": "why this choice was made",
  "directAnswer": "text or null",
  "category": "general | calendar | email | files | documents | drive | search | analysis | creation",
  "canAnswerDirectly": true or false
}

Guidelines:
- Use the conversation history to resolve follow-ups and references such as "it", "that file", "the email".
- "What about tomorrow?" after a calendar answer means the same calendar tool with date "tomorrow".
- "Tell me more about that" after search results means crawl_page on the most relevant URL.
- Resolve relative dates ("today", "tomorrow", "yesterday") against the timestamp.
- Only include parameters that are explicitly stated or clearly implied. Never invent ids or URLs.
"""


def format_tools_for_prompt(tools: list[ToolMetadata]) -> str:
    """Render the tool catalog as plain text blocks, one per tool."""
    blocks = []
    for tool in tools:
        params = ", ".join(
            f"{p.name} ({p.type}{', required' if p.required else ''}): {p.description}"
            for p in tool.parameters
        ) or "none"
        examples = ", ".join(f'"{ex.query}"' for ex in tool.examples) or "none"
        lines = [
            f"Tool: {tool.name}",
            f"Description: {tool.description}",
            f"Category: {tool.category}",
            f"Access: {tool.data_access}",
            f"Parameters: {params}",
            f"Examples: {examples}",
        ]
        if tool.time_context:
            lines.append(f"Time context: {tool.time_context}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_history(conversation: ConversationContext | None) -> str:
    """Conversation history and recent tool usage, or '' when there is none."""
    if conversation is None or not conversation.messages:
        return ""
    parts = [
        f"\n\nConversation History (last {len(conversation.messages)} messages, oldest first):",
        *(f"{m.role}: {m.content}" for m in conversation.messages),
    ]
    if conversation.tool_calls:
        parts.append("\nRecent Tool Usage:")
        for call in conversation.tool_calls:
            when = f" at {_short_time(call.created_at)}" if call.created_at else ""
            parts.append(f"- Used {call.tool_name}{when}")
    return "\n".join(parts)


def _short_time(raw: str) -> str:
    try:
        return datetime.fromisoformat(raw).strftime("%H:%M")
    except ValueError:
        return raw


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```/```json fence if the model added one."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[-1] if "\n" in cleaned else cleaned[3:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    return cleaned.strip()


def parse_selection(raw: str) -> ToolSelection | None:
    """Parse model output into a ToolSelection. None on any parse failure."""
    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        logger.warning("Tool selection was not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        logger.warning("Tool selection was JSON but not an object: %s", type(data).__name__)
        return None
    try:
        return ToolSelection.model_validate(data)
    except ValidationError as e:
        logger.warning("Tool selection failed validation: %s", e)
        return None


class ToolSelector:
    """Chooses a tool for a query using the fast reasoning model."""

    def __init__(self, claude: ClaudeClient, registry: ToolRegistry, model: str | None = None) -> None:
        self._claude = claude
        self._registry = registry
        self._model = model

    def build_prompt(self, context: UserContext, conversation: ConversationContext | None = None) -> str:
        catalog = format_tools_for_prompt(self._registry.get_all_metadata())
        return (
            "You are an assistant with calendar, email, web research, Google Drive "
            "and document tools.\n\n"
            f"Available Tools:\n{catalog}\n\n"
            f'User Query: "{context.query}"\n'
            f"Timestamp: {context.timestamp} ({context.timezone})"
            f"{format_history(conversation)}\n\n"
            f"{_INSTRUCTIONS}"
        )

    async def select(
        self,
        context: UserContext,
        user_id: str,
        conversation: ConversationContext | None = None,
    ) -> ToolSelection | None:
        """
        Return the model's ToolSelection, or None when the model is
        unreachable or its output cannot be parsed.

        A tool name that is not registered is returned as-is; the executor
        reports it as "not found" so the failure stays graceful.
        """
        prompt = self.build_prompt(context, conversation)
        try:
            raw = await self._claude.complete(
                messages=[{"role": "user", "content": prompt}],
                model=self._model or settings.model_selection,
                system=_SYSTEM,
                max_tokens=1024,
            )
        except Exception as e:
            logger.warning("Tool selection call failed for user %s: %s", user_id, e)
            return None

        selection = parse_selection(raw)
        if selection is None:
            return None
        if selection.tool and selection.tool not in self._registry:
            logger.warning("Model selected unregistered tool %r for user %s", selection.tool, user_id)
        logger.info(
            "Selected tool=%s confidence=%d for user %s",
            selection.tool or "<none>", selection.confidence, user_id,
        )
        return selection

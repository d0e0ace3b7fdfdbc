"""
Response generation: turns a (possibly chained) tool result into the final
natural-language answer, personalised to the user's stored preferences and
shaped for voice or text.

Failed tool results never reach the model; they get a fixed apology that
embeds the error. A model failure after a successful tool run returns a
fixed fallback so the user never sees an exception.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ..config import settings
from ..constants import DEFAULT_TONE_INSTRUCTION, RESPONSES, TONE_INSTRUCTIONS
from ..models import ConversationContext, ToolResult, ToolSelection, UserContext

if TYPE_CHECKING:
    from .claude_client import ClaudeClient

logger = logging.getLogger(__name__)

_SYSTEM = (
    "You are a helpful personal assistant. You turn raw tool output into a "
    "natural, accurate answer. Never invent data that is not in the tool output."
)

# Tool output beyond this is cut before it goes into the prompt
_MAX_RAW_CHARS = 24_000

_CALENDAR_WORDS = ("calendar", "meeting")
_EMAIL_WORDS = ("email",)


def _join(values: Any) -> str:
    if isinstance(values, (list, tuple)):
        return ", ".join(str(v) for v in values)
    return str(values)


def build_personalization_block(context: UserContext) -> str:
    """Personalisation lines for the prompt, or '' when the user has no profile."""
    personalization = context.personalization
    if personalization is None or not personalization.user_preferences:
        return ""
    prefs = personalization.user_preferences
    personal = prefs.get("personalInfo") or {}
    style = prefs.get("communicationStyle") or {}
    content = prefs.get("contentPreferences") or {}
    behavior = prefs.get("assistantBehavior") or {}
    work = prefs.get("workPreferences") or {}
    domain = prefs.get("domainPreferences") or {}

    lines = ["", "**PERSONALIZATION CONTEXT**:"]
    if personal.get("name"):
        lines.append(f"- User's name: {personal['name']}")
    if personal.get("profession"):
        lines.append(f"- Profession: {personal['profession']}")

    if style:
        lines.append(f"- Preferred tone: {style.get('tone') or 'balanced'}")
        lines.append(f"- Detail level: {style.get('detail_level') or 'moderate'}")
        lines.append(f"- Explanation style: {style.get('explanation_style') or 'examples-heavy'}")
        if style.get("use_analogies"):
            lines.append("- User likes analogies and metaphors")
        if style.get("include_examples"):
            lines.append("- Include practical examples")

    if content.get("primary_interests"):
        lines.append(f"- Primary interests: {_join(content['primary_interests'])}")
    if content.get("learning_style"):
        lines.append(f"- Learning style: {content['learning_style']}")
    if content.get("preferred_formats"):
        lines.append(f"- Preferred formats: {_join(content['preferred_formats'])}")

    if behavior:
        lines.append(f"- Proactivity level: {behavior.get('proactivity_level') or 'suggestive'}")
        lines.append(f"- Personality: {behavior.get('personality') or 'helpful'}")
        if behavior.get("follow_up_questions"):
            lines.append("- User appreciates follow-up questions")
        if behavior.get("suggest_related_topics"):
            lines.append("- User likes topic suggestions")

    if work.get("work_schedule"):
        lines.append(f"- Most productive time: {work['work_schedule']}")
    if work.get("productivity_style"):
        lines.append(f"- Work style: {work['productivity_style']}")

    if domain.get("tech_stack"):
        lines.append(f"- Tech stack: {_join(domain['tech_stack'])}")
    if domain.get("business_focus"):
        lines.append(f"- Business areas: {_join(domain['business_focus'])}")

    now = personalization.current_context
    if now is not None:
        lines.append(f"- Time context: {now.time_of_day}, {now.day_of_week}")

    lines.append("")
    lines.append(
        "**IMPORTANT**: Adapt your response to match these preferences while "
        "staying helpful and accurate."
    )
    return "\n".join(lines)


def tone_instruction(context: UserContext) -> str:
    prefs = context.personalization.user_preferences if context.personalization else {}
    tone = (prefs.get("communicationStyle") or {}).get("tone") or "friendly"
    return TONE_INSTRUCTIONS.get(str(tone).lower(), DEFAULT_TONE_INSTRUCTION)


def format_recent_history(
    conversation: ConversationContext | None,
    limit: int | None = None,
    snippet_chars: int | None = None,
) -> str:
    if conversation is None or not conversation.messages:
        return ""
    limit = limit if limit is not None else settings.response_history_limit
    snippet_chars = snippet_chars if snippet_chars is not None else settings.response_history_snippet_chars
    recent = conversation.messages[-limit:] if limit > 0 else []
    if not recent:
        return ""
    lines = [f"\n\nConversation History (last {len(recent)} messages):"]
    for msg in recent:
        text = msg.content[:snippet_chars]
        if len(msg.content) > snippet_chars:
            text += "..."
        lines.append(f"{msg.role}: {text}")
    return "\n".join(lines)


def _serialise(data: Any) -> str:
    text = json.dumps(data, indent=2, default=str, ensure_ascii=False)
    if len(text) > _MAX_RAW_CHARS:
        text = text[:_MAX_RAW_CHARS] + "\n... (truncated)"
    return text


def suggested_actions(context: UserContext) -> list[str]:
    """Rule-based follow-up suggestions, at most two."""
    if not context.preferences.include_actions:
        return []
    query = context.query.lower()
    suggestions: list[str] = []
    if any(w in query for w in _CALENDAR_WORDS):
        suggestions += [
            "Would you like to see your schedule for tomorrow?",
            "Do you want to check for any conflicts?",
        ]
    if any(w in query for w in _EMAIL_WORDS):
        suggestions += [
            "Would you like me to check for any urgent emails?",
            "Do you want to see emails from specific people?",
        ]
    return suggestions[:2]


class ResponseGenerator:
    """Formats tool output into the user-facing answer with the response model."""

    def __init__(self, claude: ClaudeClient, model: str | None = None) -> None:
        self._claude = claude
        self._model = model

    def build_prompt(
        self,
        context: UserContext,
        selection: ToolSelection,
        result: ToolResult,
        conversation: ConversationContext | None = None,
    ) -> str:
        data = result.data
        sections = [
            "Convert this raw tool output into a natural, conversational response.",
            "",
            f'Original Query: "{context.query}"',
            f"Tool Used: {selection.tool}",
            f"Raw Data: {_serialise(data)}{format_recent_history(conversation)}",
        ]

        if isinstance(data, dict) and data.get("auto_crawled"):
            sections += [
                "",
                "**SPECIAL INSTRUCTION**: This answer comes from automatically visiting "
                f"{data.get('total_sites_crawled', 0)} websites. Synthesize ALL the crawled "
                "content into one cohesive answer, compare sources where relevant, point out "
                "where sources agree or conflict, and say explicitly that you consulted "
                "multiple websites.",
            ]
        if isinstance(data, dict) and data.get("chained_tools"):
            sections += [
                "",
                f"Tools ran in sequence: {' -> '.join(data['chained_tools'])}. "
                "Briefly explain what was done in that order. If a document was "
                "created, say where it was saved.",
            ]

        personalization = build_personalization_block(context)
        if personalization:
            sections.append(personalization)

        if context.preferences.response_style == "brief":
            length_rule = "Keep it short: two or three sentences."
        elif context.preferences.response_style == "detailed":
            length_rule = "Be thorough and well structured."
        else:
            length_rule = "Keep it conversational and informative."

        if context.is_voice:
            modality = (
                "This will be read aloud. Do not use markdown, tables, bullet symbols or "
                "URLs. Use short sentences and clear verbal transitions between points."
            )
        else:
            modality = "Use markdown (headings, lists, bold) where it helps readability."

        sections += [
            "",
            "Instructions:",
            f"- {tone_instruction(context)}",
            f"- {length_rule}",
            f"- {modality}",
            "- Focus on what the user actually asked for.",
            "- For calendar data mention times and key details; for email summarise the key messages.",
            "- If the data is empty or minimal, say so naturally.",
            "- Use the conversation history for continuity when it is relevant.",
            "",
            "Generate the response:",
        ]
        return "\n".join(sections)

    async def generate(
        self,
        context: UserContext,
        selection: ToolSelection,
        result: ToolResult,
        user_id: str,
        conversation: ConversationContext | None = None,
    ) -> str:
        if not result.success:
            return RESPONSES["tool_failed"].format(error=result.error or RESPONSES["tool_failed_default"])

        prompt = self.build_prompt(context, selection, result, conversation)
        try:
            text = await self._claude.complete(
                messages=[{"role": "user", "content": prompt}],
                model=self._model or settings.model_response,
                system=_SYSTEM,
            )
        except Exception as e:
            logger.error("Response generation failed for user %s: %s", user_id, e)
            return RESPONSES["format_failed"]

        text = text.strip()
        if not text:
            logger.warning("Response model returned empty text for user %s", user_id)
            return RESPONSES["format_failed"]
        return text

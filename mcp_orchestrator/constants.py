"""
Shared constants for mcp_orchestrator.

Centralises values that are used across multiple modules to avoid duplication
and ensure consistency.
"""

import re

# ── Standardised user-facing messages ───────────────────────────────────────────
RESPONSES = {
    "no_tool": (
        "I'm not sure how to help with that request. I can assist with calendar "
        "events, emails, web research, documents and other productivity tasks."
    ),
    "pipeline_error": (
        "Sorry, I encountered an error while processing your request. Please try again."
    ),
    "tool_failed": "I couldn't retrieve the information you requested. {error}",
    "tool_failed_default": "Please try again later.",
    "format_failed": (
        "I found the information you requested, but had trouble formatting the "
        "response. The raw data is still available."
    ),
}

ERROR_MESSAGES = {
    "no_tool": "No suitable tool found",
    "tool_not_found": "Tool '{name}' not found",
    "auth_required": "User authentication required",
    "query_required": "Query is required and must be a string",
    "text_required": "Text is required and must be a string",
    "audio_required": "Audio file is required",
    "audio_too_large": "Audio file is too large",
    "speech_failed": "Failed to recognize speech",
    "tts_failed": "Failed to synthesize speech",
    "internal": "Internal server error while processing request",
    "session_not_found": "Session not found",
}


# ── Tool names with a chaining role ─────────────────────────────────────────────
WEB_SEARCH_TOOL = "search_web"
CRAWL_TOOL = "crawl_page"
CREATE_DOCUMENT_TOOL = "create_document"
CONTENT_GENERATION_TOOL = "generate_content"
DOCUMENT_PROCESSING_TOOL = "process_document"

EMAIL_RETRIEVAL_TOOLS = frozenset({"get_emails", "get_last_ten_mails"})
CALENDAR_RETRIEVAL_TOOLS = frozenset({"get_todays_events"})
DRIVE_RETRIEVAL_TOOLS = frozenset({"search_drive", "get_drive_file"})
DATA_RETRIEVAL_TOOLS = EMAIL_RETRIEVAL_TOOLS | CALENDAR_RETRIEVAL_TOOLS | DRIVE_RETRIEVAL_TOOLS


# ── Chaining limits ─────────────────────────────────────────────────────────────
MAX_CRAWL_SITES_COMPREHENSIVE = 5
MAX_CRAWL_SITES_DEFAULT = 3
CRAWL_MAX_LENGTH = 2000


# ── Keyword patterns for chaining decisions ─────────────────────────────────────
# Keywords anchor at a word start only, so inflections ("researching",
# "summarizing", "documentation") still match.
# Research / comprehension-seeking language that warrants crawling search hits
RESEARCH_PATTERNS = re.compile(
    r"\b(?:research|information\s+about|tell\s+me\s+about|what\s+is|explain|explanation"
    r"|summari[sz]|analy[sz]|content\s+of|detail|learn\s+about|find\s+out\s+about"
    r"|news|latest|recent|update|compar|versus|vs"
    r"|comprehensive|complete)",
    re.IGNORECASE,
)

# Queries that get the larger crawl fan-out
COMPREHENSIVE_PATTERNS = re.compile(
    r"\b(?:comprehensive|detailed|research|compar)",
    re.IGNORECASE,
)

CREATE_PATTERN = re.compile(r"\bcreat", re.IGNORECASE)
DOCUMENT_NOUN_PATTERN = re.compile(r"\b(?:doc|summary|report)", re.IGNORECASE)
SAVE_PATTERNS = re.compile(r"\bsav(?:e|ing)|\bcreate\s+doc|\bwrite\s+to\b", re.IGNORECASE)
SUMMARIZE_PATTERN = re.compile(r"\bsummari[sz]", re.IGNORECASE)
CREATE_OR_SAVE_PATTERN = re.compile(r"\b(?:creat|sav(?:e|ing))", re.IGNORECASE)


# ── Tone instructions keyed by communicationStyle.tone ──────────────────────────
TONE_INSTRUCTIONS = {
    "professional": "Write in a professional, business-appropriate tone",
    "casual": "Use a relaxed, informal, conversational tone",
    "friendly": "Be warm, supportive, and approachable",
    "formal": "Use structured, precise, and academic language",
    "enthusiastic": "Be energetic, encouraging, and positive",
    "balanced": "Adapt your tone to match the context and topic",
}
DEFAULT_TONE_INSTRUCTION = "Write in a friendly, conversational tone"

"""Tests for mcp_orchestrator/ai/selector.py."""

import json

import pytest

from mcp_orchestrator.ai.selector import (
    ToolSelector,
    format_history,
    parse_selection,
    strip_code_fences,
)
from mcp_orchestrator.models import (
    ConversationContext,
    ConversationMessage,
    ToolCallRecord,
    UserContext,
)
from mcp_orchestrator.tools import ToolBackends, build_default_registry


@pytest.fixture
def registry():
    return build_default_registry(ToolBackends())


def _selection_json(**overrides):
    payload = {
        "tool": "get_todays_events",
        "confidence": 92,
        "parameters": {},
        "reasoning": "calendar question",
        "directAnswer": None,
        "category": "calendar",
        "canAnswerDirectly": False,
    }
    payload.update(overrides)
    return json.dumps(payload)


# --------------------------------------------------------------------------- #
# Parsing                                                                      #
# --------------------------------------------------------------------------- #

def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_parse_selection_valid():
    sel = parse_selection(_selection_json())
    assert sel.tool == "get_todays_events"
    assert sel.confidence == 92
    assert sel.is_actionable and not sel.is_direct_answer


def test_parse_selection_fenced():
    sel = parse_selection(f"```json\n{_selection_json()}\n```")
    assert sel is not None and sel.tool == "get_todays_events"


def test_parse_selection_invalid_json_is_none():
    assert parse_selection("I think you want the calendar tool") is None
    assert parse_selection("") is None


def test_parse_selection_non_object_is_none():
    assert parse_selection("[1, 2, 3]") is None


def test_parse_selection_direct_answer_aliases():
    for key in ("directAnswer", "geminiOutput", "direct_answer"):
        sel = parse_selection(json.dumps({"tool": None, key: "Paris"}))
        assert sel.direct_answer == "Paris"
        assert sel.is_direct_answer


def test_parse_selection_null_tool_without_answer_is_not_actionable():
    sel = parse_selection(json.dumps({"tool": "null", "directAnswer": None}))
    assert sel.tool is None
    assert not sel.is_actionable


def test_confidence_is_clamped():
    assert parse_selection(_selection_json(confidence=250)).confidence == 100
    assert parse_selection(_selection_json(confidence="n/a")).confidence == 0


# --------------------------------------------------------------------------- #
# Prompt                                                                       #
# --------------------------------------------------------------------------- #

def test_format_history_empty():
    assert format_history(None) == ""
    assert format_history(ConversationContext()) == ""


def test_format_history_oldest_first_with_tool_usage():
    conv = ConversationContext(
        messages=[
            ConversationMessage(role="user", content="what's on today"),
            ConversationMessage(role="assistant", content="You have two meetings"),
        ],
        tool_calls=[ToolCallRecord(tool_name="get_todays_events", created_at="2026-03-01T09:15:00")],
    )
    text = format_history(conv)
    assert "last 2 messages" in text
    assert text.index("user: what's on today") < text.index("assistant: You have two meetings")
    assert "- Used get_todays_events at 09:15" in text


def test_build_prompt_contains_catalog_and_query(registry, fake_claude):
    selector = ToolSelector(fake_claude(), registry)
    ctx = UserContext(query="What's on my calendar?", timezone="Australia/Canberra")
    prompt = selector.build_prompt(ctx)
    assert 'User Query: "What\'s on my calendar?"' in prompt
    assert "(Australia/Canberra)" in prompt
    for name in registry.names:
        assert f"Tool: {name}" in prompt


# --------------------------------------------------------------------------- #
# select()                                                                     #
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_select_returns_parsed_selection(registry, fake_claude):
    claude = fake_claude(_selection_json())
    selector = ToolSelector(claude, registry, model="fast-model")
    sel = await selector.select(UserContext(query="What's on today?"), "u1")
    assert sel.tool == "get_todays_events"
    assert claude.calls[0]["model"] == "fast-model"


@pytest.mark.asyncio
async def test_select_invalid_output_is_none(registry, fake_claude):
    selector = ToolSelector(fake_claude("not json at all"), registry)
    assert await selector.select(UserContext(query="hello"), "u1") is None


@pytest.mark.asyncio
async def test_select_model_error_is_none(registry, fake_claude):
    selector = ToolSelector(fake_claude(RuntimeError("model down")), registry)
    assert await selector.select(UserContext(query="hello"), "u1") is None


@pytest.mark.asyncio
async def test_select_keeps_unregistered_tool_name(registry, fake_claude):
    selector = ToolSelector(fake_claude(_selection_json(tool="order_pizza")), registry)
    sel = await selector.select(UserContext(query="pizza"), "u1")
    assert sel.tool == "order_pizza"

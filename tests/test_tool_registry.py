"""
Tests for mcp_orchestrator/tools/registry.py and the built-in tool set.
"""

import logging

import pytest

from mcp_orchestrator.models import ToolExample, ToolMetadata, ToolResult
from mcp_orchestrator.tools import ToolBackends, build_default_registry
from mcp_orchestrator.tools.registry import ToolRegistry
from mcp_orchestrator.tools.schemas import BUILTIN_TOOL_METADATA


async def _impl(user_id, params):
    return ToolResult.ok({"user": user_id})


async def _other_impl(user_id, params):
    return ToolResult.ok({"other": True})


def _meta(name, category="productivity", description="does things", examples=()):
    return ToolMetadata(
        name=name,
        description=description,
        category=category,
        examples=[ToolExample(query=q) for q in examples],
    )


@pytest.fixture
def registry():
    return build_default_registry(ToolBackends())


# --------------------------------------------------------------------------- #
# Built-in set                                                                 #
# --------------------------------------------------------------------------- #

def test_every_builtin_is_registered(registry):
    assert len(registry) == len(BUILTIN_TOOL_METADATA)
    for meta in BUILTIN_TOOL_METADATA:
        assert registry.get_tool(meta.name) is not None
        assert registry.get_metadata(meta.name) == meta


def test_unknown_tool_lookup_returns_none(registry):
    assert registry.get_tool("nonexistent") is None
    assert registry.get_metadata("nonexistent") is None
    assert "nonexistent" not in registry


def test_builtin_names_are_unique():
    names = [m.name for m in BUILTIN_TOOL_METADATA]
    assert len(names) == len(set(names))


def test_write_tools_are_classified(registry):
    writes = {m.name for m in registry.get_all_metadata() if m.data_access == "write"}
    assert writes == {"create_calendar_event", "create_document"}


def test_every_builtin_has_examples_and_description():
    for meta in BUILTIN_TOOL_METADATA:
        assert meta.description.strip()
        assert meta.examples, meta.name


# --------------------------------------------------------------------------- #
# Registration semantics                                                       #
# --------------------------------------------------------------------------- #

def test_duplicate_registration_last_write_wins(caplog):
    reg = ToolRegistry()
    reg.register("tool_a", _impl, _meta("tool_a", description="first"))
    with caplog.at_level(logging.WARNING):
        reg.register("tool_a", _other_impl, _meta("tool_a", description="second"))
    assert len(reg) == 1
    assert reg.get_tool("tool_a") is _other_impl
    assert reg.get_metadata("tool_a").description == "second"
    assert "registered twice" in caplog.text


def test_register_aligns_metadata_name():
    reg = ToolRegistry()
    reg.register("alias", _impl, _meta("original"))
    assert reg.get_metadata("alias").name == "alias"


# --------------------------------------------------------------------------- #
# Queries                                                                      #
# --------------------------------------------------------------------------- #

def test_get_by_category(registry):
    names = {m.name for m in registry.get_by_category("calendar")}
    assert names == {"get_todays_events", "create_calendar_event"}
    assert registry.get_by_category("social") == []


def test_get_by_category_is_case_insensitive(registry):
    assert len(registry.get_by_category("EMAIL")) == 2


def test_search_matches_name_description_and_examples():
    reg = ToolRegistry()
    reg.register("alpha_tool", _impl, _meta("alpha_tool", description="Reads the weather"))
    reg.register("beta", _impl, _meta("beta", examples=["Show my Budget spreadsheet"]))
    reg.register("gamma", _impl, _meta("gamma"))

    assert [m.name for m in reg.search("ALPHA")] == ["alpha_tool"]
    assert [m.name for m in reg.search("weather")] == ["alpha_tool"]
    assert [m.name for m in reg.search("budget")] == ["beta"]
    assert reg.search("zzz") == []
    assert reg.search("   ") == []


def test_categories_sorted_unique(registry):
    cats = registry.categories()
    assert cats == sorted(set(cats))
    assert "search" in cats and "documents" in cats

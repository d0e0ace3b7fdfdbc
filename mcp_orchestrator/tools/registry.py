"""
Tool registry: the catalog of callable tools and their metadata.

A registry instance is built once at startup (see tools.build_default_registry)
and passed by reference to the executor, selector and HTTP layer. It is
read-mostly after startup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from ..models import ToolMetadata, ToolResult

logger = logging.getLogger(__name__)

# A tool implementation: async (user_id, params) -> ToolResult
ToolImplementation = Callable[[str, dict], Awaitable[ToolResult]]


@dataclass(frozen=True)
class RegisteredTool:
    """An implementation and its metadata, always registered together."""
    implementation: ToolImplementation
    metadata: ToolMetadata


class ToolRegistry:
    """Maps tool name to (implementation, metadata)."""

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def register(
        self, name: str, implementation: ToolImplementation, metadata: ToolMetadata
    ) -> None:
        """
        Register a tool. Re-registering a name replaces the previous entry
        (last write wins); the replacement is logged, not rejected.
        """
        if metadata.name != name:
            metadata = metadata.model_copy(update={"name": name})
        if name in self._tools:
            logger.warning("Tool %r registered twice; replacing previous definition", name)
        self._tools[name] = RegisteredTool(implementation=implementation, metadata=metadata)
        logger.debug("Registered tool: %s (%s, %s)", name, metadata.category, metadata.data_access)

    def register_all(self, entries: Iterable[tuple[ToolImplementation, ToolMetadata]]) -> None:
        for implementation, metadata in entries:
            self.register(metadata.name, implementation, metadata)

    def get_tool(self, name: str) -> ToolImplementation | None:
        entry = self._tools.get(name)
        return entry.implementation if entry else None

    def get_metadata(self, name: str) -> ToolMetadata | None:
        entry = self._tools.get(name)
        return entry.metadata if entry else None

    def get_all_metadata(self) -> list[ToolMetadata]:
        """All tool metadata. Callers must not rely on the order."""
        return [entry.metadata for entry in self._tools.values()]

    def get_by_category(self, category: str) -> list[ToolMetadata]:
        category = category.strip().lower()
        return [m for m in self.get_all_metadata() if m.category == category]

    def search(self, text: str) -> list[ToolMetadata]:
        """
        Case-insensitive substring match over name, description and example
        queries. No ranking beyond match presence.
        """
        needle = text.strip().lower()
        if not needle:
            return []
        matches = []
        for meta in self.get_all_metadata():
            haystacks = [meta.name, meta.description] + [ex.query for ex in meta.examples]
            if any(needle in h.lower() for h in haystacks):
                matches.append(meta)
        return matches

    def categories(self) -> list[str]:
        return sorted({m.category for m in self.get_all_metadata()})

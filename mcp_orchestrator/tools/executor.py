"""
Tool executor: invokes registered tools behind a uniform result envelope.

Never raises to the caller. Unknown tools, invalid parameters, timeouts and
exceptions thrown by tool implementations all come back as
ToolResult(success=False, error=...).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import settings
from ..constants import ERROR_MESSAGES
from ..exceptions import ToolTimeoutError
from ..models import ToolMetadata, ToolResult
from .cache import ResponseCache, make_cache_key
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
}


def validate_parameters(metadata: ToolMetadata, params: dict, strict: bool) -> str | None:
    """
    Check params against the declared schema. Returns an error string, or
    None if the call may proceed.

    Missing required parameters are always an error. Undeclared and
    mistyped parameters are errors only in strict mode.
    """
    missing = [
        p.name for p in metadata.parameters
        if p.required and params.get(p.name) in (None, "")
    ]
    if missing:
        return f"Missing required parameter(s) for '{metadata.name}': {', '.join(missing)}"

    declared = {p.name: p for p in metadata.parameters}
    unknown = sorted(k for k in params if k not in declared)
    mistyped = sorted(
        k for k, v in params.items()
        if k in declared and v is not None and not _TYPE_CHECKS[declared[k].type](v)
    )
    if strict:
        if unknown:
            return f"Unknown parameter(s) for '{metadata.name}': {', '.join(unknown)}"
        if mistyped:
            return f"Invalid parameter type(s) for '{metadata.name}': {', '.join(mistyped)}"
    else:
        if unknown:
            logger.debug("Passing undeclared params %s through to %s", unknown, metadata.name)
        if mistyped:
            logger.warning("Params %s do not match declared types for %s", mistyped, metadata.name)
    return None


def _coerce_result(raw: Any) -> ToolResult:
    if isinstance(raw, ToolResult):
        return raw
    if isinstance(raw, dict) and "success" in raw:
        return ToolResult.model_validate(raw)
    return ToolResult.ok(raw)


class ToolExecutor:
    """Runs tools from a registry with caching and failure isolation."""

    def __init__(
        self,
        registry: ToolRegistry,
        cache: ResponseCache | None = None,
        *,
        tool_timeout: float | None = None,
        cache_write_tools: bool | None = None,
        strict_params: bool | None = None,
    ) -> None:
        self._registry = registry
        self._cache = cache if cache is not None else ResponseCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        )
        self._tool_timeout = tool_timeout if tool_timeout is not None else settings.tool_timeout
        self._cache_write_tools = (
            cache_write_tools if cache_write_tools is not None else settings.cache_write_tools
        )
        self._strict_params = strict_params if strict_params is not None else settings.strict_tool_params
        self.executions = 0

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def is_cacheable(self, metadata: ToolMetadata) -> bool:
        return metadata.data_access != "write" or self._cache_write_tools

    async def execute(self, tool_name: str, user_id: str, params: dict | None = None) -> ToolResult:
        params = dict(params or {})
        implementation = self._registry.get_tool(tool_name)
        metadata = self._registry.get_metadata(tool_name)
        if implementation is None or metadata is None:
            logger.warning("Requested unknown tool %r for user %s", tool_name, user_id)
            return ToolResult.fail(ERROR_MESSAGES["tool_not_found"].format(name=tool_name))

        error = validate_parameters(metadata, params, self._strict_params)
        if error:
            logger.info("Rejected call to %s: %s", tool_name, error)
            return ToolResult.fail(error)

        cacheable = self.is_cacheable(metadata)
        key = make_cache_key(tool_name, user_id, params)
        if cacheable:
            cached = self._cache.get(key)
            if cached is not None:
                logger.info("Using cached result for tool %s (user %s)", tool_name, user_id)
                return cached.model_copy(update={"cached": True})

        logger.info("Executing tool %s for user %s with params %s", tool_name, user_id, params)
        self.executions += 1
        try:
            raw = await asyncio.wait_for(implementation(user_id, params), timeout=self._tool_timeout)
            result = _coerce_result(raw)
        except asyncio.TimeoutError:
            exc = ToolTimeoutError(tool_name, self._tool_timeout)
            logger.warning("%s", exc)
            return ToolResult.fail(str(exc))
        except Exception as exc:
            logger.error("Error executing tool %s: %s", tool_name, exc, exc_info=True)
            return ToolResult.fail(str(exc) or type(exc).__name__)

        if result.success and cacheable:
            self._cache.set(key, result)
        return result

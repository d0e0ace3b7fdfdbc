"""
Tool package: registry, executor, response cache and the built-in tool set.

The package is organised into:
- registry.py: ToolRegistry (name -> implementation + metadata)
- executor.py: ToolExecutor (validation, caching, failure isolation)
- cache.py: ResponseCache (TTL memo keyed by tool, user and params)
- schemas.py: ToolMetadata for the built-in tools
- backends.py: backend protocols the built-ins delegate to
- calendar.py, email.py, drive.py, web.py, docs.py, content.py: executors

Re-exports:
    ToolRegistry, ToolExecutor, ResponseCache, ToolBackends,
    build_default_registry
"""

from __future__ import annotations

from functools import partial

from . import calendar, content, docs, drive, email, web
from . import schemas as s
from .backends import ToolBackends
from .cache import ResponseCache
from .executor import ToolExecutor
from .registry import ToolRegistry

_BUILTINS = [
    (calendar.exec_get_todays_events, s.GET_TODAYS_EVENTS),
    (calendar.exec_create_calendar_event, s.CREATE_CALENDAR_EVENT),
    (email.exec_get_emails, s.GET_EMAILS),
    (email.exec_get_last_ten_mails, s.GET_LAST_TEN_MAILS),
    (web.exec_search_web, s.SEARCH_WEB),
    (web.exec_crawl_page, s.CRAWL_PAGE),
    (drive.exec_search_drive, s.SEARCH_DRIVE),
    (drive.exec_get_drive_file, s.GET_DRIVE_FILE),
    (docs.exec_create_document, s.CREATE_DOCUMENT),
    (content.exec_generate_content, s.GENERATE_CONTENT),
    (docs.exec_process_document, s.PROCESS_DOCUMENT),
]


def build_default_registry(backends: ToolBackends | None = None) -> ToolRegistry:
    """Build a registry holding every built-in tool bound to `backends`."""
    backends = backends or ToolBackends()
    registry = ToolRegistry()
    registry.register_all((partial(fn, backends), meta) for fn, meta in _BUILTINS)
    return registry


__all__ = [
    "ToolRegistry",
    "ToolExecutor",
    "ResponseCache",
    "ToolBackends",
    "build_default_registry",
]

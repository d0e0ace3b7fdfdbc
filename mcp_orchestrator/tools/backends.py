"""
Backend interfaces the built-in tools delegate to.

Provider clients (Google Calendar, Gmail, Drive, ...) live outside this
package; anything satisfying these protocols can be injected at startup.
A backend left as None makes its tools report "not configured".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..ai.claude_client import ClaudeClient
    from .docs import LocalDocumentStore


@runtime_checkable
class CalendarBackend(Protocol):
    async def list_events(self, user_id: str, day: date) -> list[dict]:
        """Events on `day`. Each dict carries summary, start, end, description."""
        ...

    async def create_event(
        self,
        user_id: str,
        title: str,
        start: datetime,
        duration_hours: float,
        description: str = "",
    ) -> dict:
        ...


@runtime_checkable
class MailBackend(Protocol):
    async def search(self, user_id: str, query: str, max_results: int) -> list[dict]:
        """Messages matching a provider query ("" = most recent). Dicts carry
        id, subject, sender, date, snippet."""
        ...


@runtime_checkable
class DriveBackend(Protocol):
    async def search(self, user_id: str, query: str, max_results: int) -> list[dict]:
        """Files matching query. Dicts carry id, name, mime_type, size."""
        ...

    async def get_file(self, user_id: str, file_id: str) -> dict:
        """A single file including its text `content` where available."""
        ...

    async def create_file(self, user_id: str, title: str, content: str, mime_type: str) -> dict:
        ...


@dataclass
class ToolBackends:
    """Everything the built-in tools need, injected once at startup."""
    calendar: CalendarBackend | None = None
    mail: MailBackend | None = None
    drive: DriveBackend | None = None
    documents: "LocalDocumentStore | None" = None
    claude: "ClaudeClient | None" = None
    crawl_timeout: float = 15.0

"""Calendar tool executors."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from ..models import ToolResult
from ..utils.timezones import local_now

if TYPE_CHECKING:
    from .backends import ToolBackends

logger = logging.getLogger(__name__)

_NOT_CONFIGURED = "Calendar not configured."

_RELATIVE_DAYS = {"today": 0, "tomorrow": 1, "yesterday": -1}


def resolve_day(raw: str | None, today: date | None = None, tz_name: str | None = None) -> date:
    """
    Parse a YYYY-MM-DD date or today/tomorrow/yesterday. Empty means today.

    Relative days count from the current date in tz_name (UTC when unset).
    """
    today = today or local_now(tz_name).date()
    value = (raw or "").strip().lower()
    if not value:
        return today
    if value in _RELATIVE_DAYS:
        return today + timedelta(days=_RELATIVE_DAYS[value])
    return date.fromisoformat(value[:10])


async def exec_get_todays_events(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """List calendar events for a day (default: today)."""
    if backends.calendar is None:
        return ToolResult.fail(_NOT_CONFIGURED)
    try:
        day = resolve_day(inp.get("date"), tz_name=inp.get("timezone"))
    except ValueError:
        return ToolResult.fail(f"Invalid date: {inp.get('date')!r}. Use YYYY-MM-DD.")

    events = await backends.calendar.list_events(user_id, day)
    return ToolResult.ok({
        "date": day.isoformat(),
        "events": events,
        "count": len(events),
    })


async def exec_create_calendar_event(backends: ToolBackends, user_id: str, inp: dict) -> ToolResult:
    """Create a new calendar event."""
    if backends.calendar is None:
        return ToolResult.fail(_NOT_CONFIGURED)
    title = str(inp.get("title", "")).strip()
    raw_date = str(inp.get("date", "")).strip()
    raw_time = str(inp.get("time", "")).strip()
    description = str(inp.get("description", "")).strip()

    if not title or not raw_date or not raw_time:
        return ToolResult.fail("Cannot create event: title, date, and time are all required.")

    try:
        day = resolve_day(raw_date, tz_name=inp.get("timezone"))
        start = datetime.combine(day, datetime.strptime(raw_time, "%H:%M").time())
        duration = float(inp.get("duration_hours", 1.0))
    except ValueError as e:
        return ToolResult.fail(f"Invalid date/time: {e}")

    event = await backends.calendar.create_event(user_id, title, start, duration, description)
    logger.info("Created calendar event %r for user %s", title, user_id)
    return ToolResult.ok({"event": event, "title": title, "start": start.isoformat()})

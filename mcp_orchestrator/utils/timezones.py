"""Local time helpers for per-request timezones."""

import logging
import zoneinfo
from datetime import datetime, timezone
from typing import Literal

logger = logging.getLogger(__name__)

TimeOfDay = Literal["morning", "afternoon", "evening"]


def resolve_zone(tz_name: str | None) -> zoneinfo.ZoneInfo | timezone:
    """ZoneInfo for an IANA name; UTC for blank or unknown names."""
    if not tz_name:
        return timezone.utc
    try:
        return zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown timezone %r, using UTC", tz_name)
        return timezone.utc


def local_now(tz_name: str | None, now: datetime | None = None) -> datetime:
    """Current time in tz_name. A naive `now` is taken to be UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(resolve_zone(tz_name))


def time_of_day(hour: int) -> TimeOfDay:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"

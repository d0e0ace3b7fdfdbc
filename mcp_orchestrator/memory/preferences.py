"""
User personalisation profiles and request enrichment.

The profile is a free-form JSON document written by the client's onboarding
flow (communicationStyle, contentPreferences, assistantBehavior, ...).
PreferenceEnricher folds it into a copy of the request context. Enrichment
is best-effort: when the store fails or holds nothing, the caller's context
comes back untouched.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Callable

from ..config import settings
from ..models import CurrentContext, Personalization, ResponseStyle, UserContext
from ..utils.timezones import local_now, time_of_day
from .database import DatabaseManager

logger = logging.getLogger(__name__)


def map_detail_level(detail_level: str | None) -> ResponseStyle:
    match (detail_level or "").strip().lower():
        case "brief":
            return "brief"
        case "detailed" | "comprehensive":
            return "detailed"
        case _:
            return "conversational"


class PreferenceStore:
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get(self, user_id: str) -> tuple[dict, bool] | None:
        """(preferences, onboarding_completed), or None if the user has no profile."""
        async with self._db.get_connection() as conn:
            cursor = await conn.execute(
                "SELECT preferences, onboarding_completed FROM user_preferences WHERE user_id=?",
                (user_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row["preferences"] or "{}"), bool(row["onboarding_completed"])

    async def save(self, user_id: str, preferences: dict, onboarding_completed: bool = False) -> None:
        async with self._db.get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO user_preferences (user_id, preferences, onboarding_completed)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    preferences=excluded.preferences,
                    onboarding_completed=excluded.onboarding_completed,
                    updated_at=strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
                """,
                (user_id, json.dumps(preferences), int(onboarding_completed)),
            )
            await conn.commit()
        logger.info("Saved preferences for user %s", user_id)


class PreferenceEnricher:
    """Builds a personalised copy of a UserContext."""

    def __init__(
        self,
        store: PreferenceStore | None,
        timeout: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._timeout = timeout if timeout is not None else settings.store_timeout
        self._clock = clock

    def current_context(self, tz_name: str) -> CurrentContext:
        now = local_now(tz_name, self._clock() if self._clock else None)
        return CurrentContext(
            time_of_day=time_of_day(now.hour),
            day_of_week=now.strftime("%A"),
            timestamp=now.isoformat(),
        )

    async def enrich(self, context: UserContext, user_id: str) -> UserContext:
        if self._store is None:
            return context
        try:
            record = await asyncio.wait_for(self._store.get(user_id), timeout=self._timeout)
        except Exception as e:
            logger.warning("Preference lookup failed for user %s: %s", user_id, e)
            return context
        if record is None or not record[0]:
            logger.debug("No stored preferences for user %s", user_id)
            return context

        preferences, onboarding_completed = record
        try:
            style = preferences.get("communicationStyle") or {}
            behavior = preferences.get("assistantBehavior") or {}
            pref_update = {
                "response_style": map_detail_level(style.get("detail_level")),
                "include_actions": bool(behavior.get("suggest_related_topics", False)),
            }

            enriched = context.model_copy(update={
                "preferences": context.preferences.model_copy(update=pref_update),
                "personalization": Personalization(
                    user_preferences=preferences,
                    onboarding_completed=onboarding_completed,
                    current_context=self.current_context(context.timezone),
                ),
            })
        except Exception as e:
            logger.warning("Could not apply preferences for user %s: %s", user_id, e)
            return context

        logger.info(
            "Enriched context for user %s (tone=%s, style=%s)",
            user_id, style.get("tone"), enriched.preferences.response_style,
        )
        return enriched

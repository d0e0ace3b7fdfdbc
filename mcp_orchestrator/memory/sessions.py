"""
Session store and conversation-context loader.

SessionStore persists sessions, messages and tool-call history in SQLite.
Messages are always returned oldest-first; every consumer (tool selection,
response generation, the HTTP history endpoint) relies on that order.

ConversationContextLoader is the read side used by the pipeline. It never
raises: any failure yields an empty ConversationContext.
"""

import asyncio
import json
import logging
import uuid

from ..config import settings
from ..exceptions import StorageError
from ..models import (
    ConversationContext,
    ConversationMessage,
    SessionRecord,
    ToolCallRecord,
)
from .database import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New conversation"
_TITLE_MAX = 80


def title_from_text(text: str) -> str:
    """Derive a session title from the first user message."""
    line = " ".join(text.split())
    if len(line) <= _TITLE_MAX:
        return line or DEFAULT_SESSION_TITLE
    return line[: _TITLE_MAX - 3].rstrip() + "..."


class SessionStore:
    """CRUD over sessions, messages and tool_calls."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create_session(self, user_id: str, title: str | None = None) -> SessionRecord:
        session_id = str(uuid.uuid4())
        title = (title or "").strip() or DEFAULT_SESSION_TITLE
        async with self._db.get_connection() as conn:
            await conn.execute(
                "INSERT INTO sessions (id, user_id, title) VALUES (?, ?, ?)",
                (session_id, user_id, title),
            )
            await conn.commit()
            cursor = await conn.execute("SELECT * FROM sessions WHERE id=?", (session_id,))
            row = await cursor.fetchone()
        logger.info("Created session %s for user %s", session_id, user_id)
        return _session_from_row(row)

    async def get_session(self, session_id: str, user_id: str) -> SessionRecord | None:
        async with self._db.get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM sessions WHERE id=? AND user_id=?", (session_id, user_id)
            )
            row = await cursor.fetchone()
        return _session_from_row(row) if row else None

    async def list_sessions(self, user_id: str, limit: int = 50) -> list[SessionRecord]:
        """Most recently active first."""
        async with self._db.get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM sessions WHERE user_id=? ORDER BY updated_at DESC, created_at DESC LIMIT ?",
                (user_id, limit),
            )
            rows = await cursor.fetchall()
        return [_session_from_row(r) for r in rows]

    async def get_messages(
        self, session_id: str, user_id: str, limit: int | None = None
    ) -> list[ConversationMessage]:
        """The last `limit` messages of a session (all when None), oldest first."""
        sql = """
            SELECT m.* FROM messages m
            JOIN sessions s ON s.id = m.session_id
            WHERE m.session_id=? AND s.user_id=?
            ORDER BY m.id DESC
        """
        params: tuple = (session_id, user_id)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        async with self._db.get_connection() as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
        return [_message_from_row(r) for r in reversed(rows)]

    async def add_message(
        self,
        session_id: str,
        user_id: str,
        role: str,
        content: str,
        metadata: dict | None = None,
    ) -> None:
        """Append a message. Raises StorageError if the session is not the user's."""
        async with self._db.get_connection() as conn:
            cursor = await conn.execute(
                "SELECT title FROM sessions WHERE id=? AND user_id=?", (session_id, user_id)
            )
            row = await cursor.fetchone()
            if row is None:
                raise StorageError(f"Session {session_id} not found for user {user_id}")
            await conn.execute(
                "INSERT INTO messages (session_id, role, content, metadata) VALUES (?, ?, ?, ?)",
                (session_id, role, content, json.dumps(metadata or {}, default=str)),
            )
            # First user message names an untitled session
            if role == "user" and row["title"] == DEFAULT_SESSION_TITLE:
                await conn.execute(
                    "UPDATE sessions SET title=? WHERE id=?", (title_from_text(content), session_id)
                )
            await conn.execute(
                "UPDATE sessions SET updated_at=strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id=?",
                (session_id,),
            )
            await conn.commit()

    async def record_tool_call(
        self,
        session_id: str,
        tool_name: str,
        parameters: dict | None = None,
        success: bool = True,
    ) -> None:
        async with self._db.get_connection() as conn:
            await conn.execute(
                "INSERT INTO tool_calls (session_id, tool_name, parameters, success) VALUES (?, ?, ?, ?)",
                (session_id, tool_name, json.dumps(parameters or {}, default=str), int(success)),
            )
            await conn.commit()

    async def get_tool_calls(self, session_id: str, limit: int = 5) -> list[ToolCallRecord]:
        """Most recent tool calls of a session, oldest first."""
        async with self._db.get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM tool_calls WHERE session_id=? ORDER BY id DESC LIMIT ?",
                (session_id, limit),
            )
            rows = await cursor.fetchall()
        return [
            ToolCallRecord(tool_name=r["tool_name"], success=bool(r["success"]), created_at=r["created_at"])
            for r in reversed(rows)
        ]

    async def get_conversation_context(
        self, session_id: str, user_id: str, limit: int
    ) -> ConversationContext:
        messages = await self.get_messages(session_id, user_id, limit=limit)
        tool_calls = await self.get_tool_calls(session_id, limit=limit) if messages else []
        return ConversationContext(messages=messages, tool_calls=tool_calls)


class ConversationContextLoader:
    """Fail-open loader for recent session history."""

    def __init__(self, store: SessionStore | None, timeout: float | None = None) -> None:
        self._store = store
        self._timeout = timeout if timeout is not None else settings.store_timeout

    async def load(self, session_id: str | None, user_id: str, limit: int) -> ConversationContext:
        if not session_id or self._store is None:
            return ConversationContext()
        try:
            return await asyncio.wait_for(
                self._store.get_conversation_context(session_id, user_id, limit),
                timeout=self._timeout,
            )
        except Exception as e:
            logger.warning("Could not load conversation context for session %s: %s", session_id, e)
            return ConversationContext()


def _session_from_row(row) -> SessionRecord:
    return SessionRecord(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _message_from_row(row) -> ConversationMessage:
    try:
        metadata = json.loads(row["metadata"] or "{}")
    except json.JSONDecodeError:
        metadata = {}
    return ConversationMessage(
        role=row["role"],
        content=row["content"],
        metadata=metadata,
        created_at=row["created_at"],
    )

"""Async Data Access Layer for the SESSION table.

Provides SessionDAL, the durable `SessionStore` backend, built on
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional, Sequence

from models.session_models import AgentDescriptor, ConversationEntry, Session, default_history
from services.session_store import SessionStore
from utils.database_init import AsyncDatabaseInitializer
from utils.errors import SessionNotFoundError


class SessionDAL(SessionStore):
    """Data access layer for SESSION records.

    Conversation, selected agent and report are stored as JSON text. The
    constructor accepts an `AsyncDatabaseInitializer` (or any object exposing
    an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "session_id",
        "notes",
        "selected_agent",
        "conversation",
        "report",
        "created_at",
        "last_active_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create(self, notes: str = "", agent: Optional[AgentDescriptor] = None) -> Session:
        """Insert a new SESSION row seeded with the greeting pair."""
        now = time.time()
        session = Session(
            session_id=self.new_session_id(),
            notes=notes or "",
            selected_agent=agent,
            conversation=default_history(),
            created_at=now,
            last_active_at=now,
        )
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO SESSION ({self._COLUMN_LIST}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    session.session_id,
                    session.notes,
                    json.dumps(agent.to_dict()) if agent else None,
                    self._dump_conversation(session.conversation),
                    None,
                    session.created_at,
                    session.last_active_at,
                ),
            )
            await conn.commit()
        return session

    async def load_session(self, session_id: str) -> Session:
        """Return the Session for `session_id` or raise SessionNotFoundError."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM SESSION WHERE session_id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
        if row is None:
            raise SessionNotFoundError(session_id)
        return self._row_to_session(row)

    async def append_and_save(self, session_id: str, *entries: ConversationEntry) -> Session:
        """Append entries to the stored conversation and bump last activity.

        Read and write happen on one connection inside a single transaction;
        two turns on the same session still race at the application level.
        """
        async with self._db.connection() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM SESSION WHERE session_id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
            if row is None:
                await conn.rollback()
                raise SessionNotFoundError(session_id)
            session = self._row_to_session(row)
            session.conversation.extend(entries)
            session.last_active_at = self.next_activity(session.last_active_at)
            await conn.execute(
                "UPDATE SESSION SET conversation = ?, last_active_at = ? WHERE session_id = ?",
                (self._dump_conversation(session.conversation), session.last_active_at, session_id),
            )
            await conn.commit()
        return session

    async def touch(self, session_id: str) -> None:
        session = await self.load_session(session_id)
        async with self._db.connection() as conn:
            await conn.execute(
                "UPDATE SESSION SET last_active_at = ? WHERE session_id = ?",
                (self.next_activity(session.last_active_at), session_id),
            )
            await conn.commit()

    async def clear(self, session_id: str) -> None:
        """Null out conversation and report; the row itself is kept."""
        changed = await self._update(
            "UPDATE SESSION SET conversation = NULL, report = NULL WHERE session_id = ?",
            (session_id,),
        )
        if not changed:
            raise SessionNotFoundError(session_id)

    async def save_report(self, session_id: str, report: Dict[str, Any]) -> None:
        """Store `report`, replacing any previous one."""
        session = await self.load_session(session_id)
        await self._update(
            "UPDATE SESSION SET report = ?, last_active_at = ? WHERE session_id = ?",
            (json.dumps(report), self.next_activity(session.last_active_at), session_id),
        )

    async def clear_idle(self, cutoff: float) -> List[str]:
        """Soft-clean sessions whose last activity predates `cutoff`; return their ids."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT session_id FROM SESSION WHERE last_active_at < ? "
                "AND (conversation IS NOT NULL OR report IS NOT NULL)",
                (cutoff,),
            )
            ids = [row[0] for row in await cur.fetchall()]
            if ids:
                placeholders = ", ".join("?" for _ in ids)
                await conn.execute(
                    f"UPDATE SESSION SET conversation = NULL, report = NULL WHERE session_id IN ({placeholders})",
                    tuple(ids),
                )
                await conn.commit()
        return ids

    async def _update(self, sql: str, params: tuple) -> bool:
        """Run an UPDATE and return True if a row was changed."""
        async with self._db.connection() as conn:
            await conn.execute(sql, params)
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    @staticmethod
    def _dump_conversation(conversation: List[ConversationEntry]) -> str:
        return json.dumps([entry.to_dict() for entry in conversation])

    @staticmethod
    def _row_to_session(row: Sequence[Any]) -> Session:
        """Convert a DB row tuple into a Session."""
        agent_raw = json.loads(row[2]) if row[2] else None
        conversation_raw = json.loads(row[3]) if row[3] else []
        return Session(
            session_id=row[0],
            notes=row[1] or "",
            selected_agent=AgentDescriptor.from_dict(agent_raw) if agent_raw else None,
            conversation=[ConversationEntry.from_dict(entry) for entry in conversation_raw],
            report=json.loads(row[4]) if row[4] else None,
            created_at=float(row[5]),
            last_active_at=float(row[6]),
        )

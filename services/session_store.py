"""Conversation store contract and the in-memory session backend."""

from __future__ import annotations

import copy
import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from models.session_models import AgentDescriptor, ConversationEntry, Session, default_history
from utils.errors import SessionNotFoundError


class SessionStore:
    """Async contract every session backend implements.

    A missing session raises `SessionNotFoundError`; an existing session with
    no history returns an empty `conversation` list. Every successful write
    moves `last_active_at` forward, never backward.
    """

    async def create(self, notes: str = "", agent: Optional[AgentDescriptor] = None) -> Session:
        raise NotImplementedError

    async def load_session(self, session_id: str) -> Session:
        raise NotImplementedError

    async def append_and_save(self, session_id: str, *entries: ConversationEntry) -> Session:
        raise NotImplementedError

    async def touch(self, session_id: str) -> None:
        raise NotImplementedError

    async def clear(self, session_id: str) -> None:
        raise NotImplementedError

    async def save_report(self, session_id: str, report: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def clear_idle(self, cutoff: float) -> List[str]:
        """Clear conversation and report of sessions idle since before `cutoff`."""
        raise NotImplementedError

    async def close(self) -> None:
        return None

    @staticmethod
    def new_session_id() -> str:
        return str(uuid4())

    @staticmethod
    def next_activity(previous: float) -> float:
        return max(previous, time.time())


class InMemorySessionStore(SessionStore):
    """Keep sessions in a process-local dict; contents are lost on restart."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def _get(self, session_id: str) -> Session:
        state = self._sessions.get(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return state

    async def create(self, notes: str = "", agent: Optional[AgentDescriptor] = None) -> Session:
        """Create a session seeded with the greeting pair."""
        now = time.time()
        state = Session(
            session_id=self.new_session_id(),
            notes=notes or "",
            selected_agent=agent,
            conversation=default_history(),
            created_at=now,
            last_active_at=now,
        )
        self._sessions[state.session_id] = state
        return copy.deepcopy(state)

    async def load_session(self, session_id: str) -> Session:
        """Return a copy of the session so callers cannot mutate stored history."""
        return copy.deepcopy(self._get(session_id))

    async def append_and_save(self, session_id: str, *entries: ConversationEntry) -> Session:
        """Append entries in order to the stored conversation."""
        state = self._get(session_id)
        state.conversation.extend(copy.deepcopy(list(entries)))
        state.last_active_at = self.next_activity(state.last_active_at)
        return copy.deepcopy(state)

    async def touch(self, session_id: str) -> None:
        state = self._get(session_id)
        state.last_active_at = self.next_activity(state.last_active_at)

    async def clear(self, session_id: str) -> None:
        """Drop conversation and report while keeping the session record."""
        state = self._get(session_id)
        state.conversation = []
        state.report = None

    async def save_report(self, session_id: str, report: Dict[str, Any]) -> None:
        state = self._get(session_id)
        state.report = copy.deepcopy(report)
        state.last_active_at = self.next_activity(state.last_active_at)

    async def clear_idle(self, cutoff: float) -> List[str]:
        cleared: List[str] = []
        for state in self._sessions.values():
            if state.last_active_at < cutoff and (state.conversation or state.report is not None):
                state.conversation = []
                state.report = None
                cleared.append(state.session_id)
        return cleared


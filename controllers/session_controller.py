"""Session lifecycle helpers for travel agent conversations."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request

from models.agents import AI_TRAVEL_AGENTS, find_agent
from models.session_models import GREETING_TEXT, USER_ROLE, AgentDescriptor, ConversationEntry, agent_id_from
from services.session_store import SessionStore
from services.speech.speech_service import OPENAI_VOICES
from utils.errors import SessionNotFoundError
from utils.session_sweeper import SessionSweeper


def _resolve_agent(selected_agent: Optional[Dict[str, Any]]) -> Optional[AgentDescriptor]:
    """Prefer the catalogue entry for a known id; otherwise trust the client's descriptor."""
    if not selected_agent:
        return None
    known = find_agent(agent_id_from(selected_agent.get("id")))
    return known or AgentDescriptor.from_dict(selected_agent)


def user_messages(conversation: List[ConversationEntry]) -> List[str]:
    """Return user-authored text entries, skipping the seeded opening greeting."""
    messages: List[str] = []
    for index, entry in enumerate(conversation):
        if entry.role != USER_ROLE or not entry.parts or entry.parts[0].is_image:
            continue
        text = entry.parts[0].text or ""
        if not text or (index == 0 and text == GREETING_TEXT):
            continue
        messages.append(text)
    return messages


async def start_session(request: Request, notes: str, selected_agent: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Create a new session seeded with the greeting pair and return it."""
    store: SessionStore = request.app.state.session_store
    session = await store.create(notes=notes, agent=_resolve_agent(selected_agent))
    logging.info("Session created successfully: %s", session.session_id)
    return session.to_dict()


async def get_session(request: Request, session_id: str) -> Dict[str, Any]:
    """Return one session's detail and mark it active."""
    store: SessionStore = request.app.state.session_store
    try:
        await store.touch(session_id)
        session = await store.load_session(session_id)
    except SessionNotFoundError as exc:
        logging.warning("Session %s not found.", session_id)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return session.to_dict()


async def get_history(request: Request, session_id: str) -> Dict[str, Any]:
    """Return prior user messages for a session."""
    store: SessionStore = request.app.state.session_store
    try:
        session = await store.load_session(session_id)
    except SessionNotFoundError as exc:
        logging.warning("Chat history not found for session: %s", session_id)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"messages": user_messages(session.conversation)}


async def clear_history(request: Request, session_id: str) -> Dict[str, Any]:
    """Clear conversation and report; the session record is kept."""
    store: SessionStore = request.app.state.session_store
    try:
        await store.clear(session_id)
    except SessionNotFoundError as exc:
        logging.warning("Attempted to clear chat history for non-existent session: %s", session_id)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logging.info("Successfully cleared chat history for session: %s", session_id)
    return {"message": "Chat history cleared"}


async def cleanup_sessions(request: Request) -> Dict[str, Any]:
    """Soft-clean every session idle past the configured threshold."""
    sweeper: SessionSweeper = request.app.state.session_sweeper
    cleared = await sweeper.prune_idle_sessions()
    return {"message": "Session cleanup successful", "cleared": cleared}


def list_agents() -> List[Dict[str, Any]]:
    return [agent.to_dict() for agent in AI_TRAVEL_AGENTS]


def list_voices() -> Dict[str, Any]:
    return {"voices": [{"voiceId": voice, "name": voice.capitalize()} for voice in OPENAI_VOICES]}

"""FastAPI routes for travel agent sessions and their history."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from controllers.session_controller import (
	cleanup_sessions,
	clear_history,
	get_history,
	get_session,
	list_agents,
	list_voices,
	start_session,
)

router = APIRouter(prefix="/api")


class StartPayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	notes: str = ""
	selected_agent: Optional[Dict[str, Any]] = Field(default=None, alias="selectedAgent")


@router.post("/session-chat")
async def start_session_route(request: Request, payload: StartPayload):
	try:
		return await start_session(request, payload.notes, payload.selected_agent)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/session-chat")
async def get_session_route(request: Request, session_id: str = Query(alias="sessionId")):
	try:
		return await get_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/chat-history/{session_id}")
async def get_history_route(request: Request, session_id: str):
	try:
		return await get_history(request, session_id)
	except HTTPException:
		raise
	except Exception:
		raise HTTPException(status_code=500, detail="Failed to retrieve chat history")


@router.delete("/chat-history/{session_id}")
async def clear_history_route(request: Request, session_id: str):
	try:
		return await clear_history(request, session_id)
	except HTTPException:
		raise
	except Exception:
		raise HTTPException(status_code=500, detail="Failed to clear chat history")


@router.api_route("/cleanup-sessions", methods=["GET", "POST"])
async def cleanup_sessions_route(request: Request):
	"""Sweep idle sessions; meant to be hit by an external scheduler."""
	try:
		return await cleanup_sessions(request)
	except Exception:
		raise HTTPException(status_code=500, detail="Session cleanup failed")


@router.get("/agents")
async def agents_route():
	return list_agents()


@router.get("/voices")
async def voices_route():
	return list_voices()

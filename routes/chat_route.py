"""FastAPI route for one conversation turn with the travel agent."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from controllers.chat_controller import chat_turn
from models.reply_models import InlineImage, Location, ReplySegment, TurnOutcome

router = APIRouter(prefix="/api", tags=["chat"])


class ImagePayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	data: str
	mime_type: str = Field(alias="mimeType")


class LocationPayload(BaseModel):
	latitude: float = Field(ge=-90, le=90)
	longitude: float = Field(ge=-180, le=180)


class ChatPayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	session_id: str = Field(alias="sessionId", min_length=1)
	message: Optional[str] = None
	image: Optional[ImagePayload] = None
	location: Optional[LocationPayload] = None


@router.post("/chat")
async def chat_route(request: Request, payload: ChatPayload):
	"""Process one user turn and return synthesized reply segments."""
	image = InlineImage(data=payload.image.data, mime_type=payload.image.mime_type) if payload.image else None
	location = (
		Location(latitude=payload.location.latitude, longitude=payload.location.longitude)
		if payload.location
		else None
	)
	try:
		outcome = await chat_turn(request, payload.session_id, payload.message, image, location)
	except HTTPException:
		raise
	except Exception as exc:
		logging.exception("Chat processing error for session %s: %s", payload.session_id, exc)
		outcome = TurnOutcome(
			status_code=500, segments=[ReplySegment.turn_failure()], session_id=payload.session_id
		)
	return JSONResponse(status_code=outcome.status_code, content=outcome.to_body())

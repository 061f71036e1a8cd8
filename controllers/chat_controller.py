"""Turn orchestration for the travel agent conversation endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request

from models.reply_models import (
    CONFIGURATION_ERROR_TEXT,
    InlineImage,
    Location,
    ReplySegment,
    TurnOutcome,
    TurnRequest,
)
from models.session_models import MODEL_ROLE, ContentPart, ConversationEntry, default_history
from services.image_preprocessor import ImagePreprocessor
from services.openai.dialogue_engine import DialogueEngine
from services.openai.media_inputs import build_user_entry
from services.openai.travel_prompts import build_instruction
from services.places.nearby_places import LocationContext, NearbyPlacesService
from services.session_store import SessionStore
from services.speech.lipsync import LipSyncExtractor
from services.speech.segment_synthesizer import SegmentSynthesizer
from services.speech.speech_service import SpeechService
from services.speech.turn_workspace import TurnWorkspace
from utils.errors import ModelInvocationError, SessionNotFoundError
from utils.settings import Settings

HISTORY_LOAD_ERROR_TEXT = "Error loading conversation history."


def _serialize(history: List[ConversationEntry]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in history]


class TurnOrchestrator:
    """Run one conversation turn end to end.

    Steps run strictly in order: load history, nearby places, model call,
    persist, synthesize. Places and synthesis failures degrade the reply;
    model-call and history-load failures end the turn with status 500.
    Two turns on the same session are not serialized; the later write wins.
    """

    def __init__(
        self,
        store: SessionStore,
        places: NearbyPlacesService,
        engine: DialogueEngine,
        synthesizer: SegmentSynthesizer,
        *,
        temp_dir: str,
    ) -> None:
        self.store = store
        self.places = places
        self.engine = engine
        self.synthesizer = synthesizer
        self.temp_dir = temp_dir

    async def process_turn(self, turn: TurnRequest) -> TurnOutcome:
        session_id = turn.session_id
        logging.info(
            "Chat request for session %s. Text: %s. Image: %s. Location: %s",
            session_id,
            "yes" if (turn.message or "").strip() else "no",
            "yes" if turn.image else "no",
            "yes" if turn.location else "no",
        )

        # Idle -> HistoryLoaded
        try:
            session = await self.store.load_session(session_id)
        except SessionNotFoundError:
            session = None
        except Exception as exc:
            logging.error("Database error retrieving session %s: %s", session_id, exc)
            return TurnOutcome(
                status_code=500,
                segments=[ReplySegment(text=HISTORY_LOAD_ERROR_TEXT, facial_expression="sad")],
                session_id=session_id,
            )

        seed: List[ConversationEntry] = []
        if session is None:
            logging.warning(
                "Session %s not found; answering from a default greeting history that will not be saved.",
                session_id,
            )
            history = default_history()
        elif not session.conversation:
            logging.info("Session %s has no history; seeding the greeting pair.", session_id)
            seed = default_history()
            history = list(seed)
        else:
            history = list(session.conversation)
            logging.info("Loaded session %s with %d history entries.", session_id, len(history))

        agent = session.selected_agent if session else None

        # HistoryLoaded -> ContextEnriched
        context = await self._enrich(turn.location)

        # ContextEnriched -> ModelInvoked
        user_entry = build_user_entry(turn.message, turn.image)
        instruction = build_instruction(
            context,
            has_image=turn.image is not None,
            message=turn.message,
            agent_prompt=agent.agent_prompt if agent else None,
        )
        try:
            result = await self.engine.reply(history, user_entry, instruction)
        except ModelInvocationError as exc:
            logging.error("Model invocation failed for session %s: %s", session_id, exc)
            return TurnOutcome(
                status_code=500,
                segments=[ReplySegment.turn_failure()],
                session_id=session_id,
                history=_serialize(history),
            )

        model_entry = ConversationEntry(role=MODEL_ROLE, parts=[ContentPart(text=result.raw_text)])
        updated_history = history + [user_entry, model_entry]

        # ModelInvoked -> PersistedHistory
        status_code = 200
        if session is not None:
            try:
                await self.store.append_and_save(session_id, *seed, user_entry, model_entry)
                logging.info("Updated conversation and last activity for session %s.", session_id)
            except Exception as exc:
                status_code = 500
                logging.critical(
                    "Persisting history for session %s failed; stored state now diverges from the reply: %s",
                    session_id,
                    exc,
                )

        # PersistedHistory -> SegmentsSynthesized
        segments = await self._synthesize(result.segments, session_id, agent.voice_id if agent else None)

        # SegmentsSynthesized -> Responded
        return TurnOutcome(
            status_code=status_code,
            segments=segments,
            session_id=session_id,
            history=_serialize(updated_history),
        )

    async def _enrich(self, location: Optional[Location]) -> LocationContext:
        try:
            return await self.places.lookup(location)
        except Exception as exc:
            logging.error("Nearby places enrichment failed: %s", exc)
            return LocationContext(known=location is not None)

    async def _synthesize(
        self, segments: List[ReplySegment], session_id: str, voice: Optional[str]
    ) -> List[ReplySegment]:
        try:
            async with TurnWorkspace(self.temp_dir, session_id) as workdir:
                return await self.synthesizer.synthesize_all(segments, workdir, voice=voice, label=session_id)
        except OSError as exc:
            logging.error("Could not prepare audio workspace for session %s: %s", session_id, exc)
            for segment in segments:
                segment.audio = None
                segment.lipsync = None
            return list(segments)


def build_orchestrator(state: Any) -> TurnOrchestrator:
    """Assemble a TurnOrchestrator from shared clients on `app.state`."""
    settings: Settings = state.settings
    client = state.openai_client
    speech = SpeechService(
        client,
        model=settings.tts_model,
        default_voice=settings.tts_voice,
        timeout=settings.speech_timeout,
    )
    lipsync: LipSyncExtractor = state.lipsync_extractor
    return TurnOrchestrator(
        store=state.session_store,
        places=NearbyPlacesService(state.http_client, settings.maps_api_key, timeout=settings.places_timeout),
        engine=DialogueEngine(client, model=settings.chat_model, timeout=settings.model_timeout),
        synthesizer=SegmentSynthesizer(speech, lipsync, concurrency=settings.speech_concurrency),
        temp_dir=settings.audio_temp_dir,
    )


async def chat_turn(
    request: Request,
    session_id: str,
    message: Optional[str],
    image: Optional[InlineImage],
    location: Optional[Location],
) -> TurnOutcome:
    """Validate configuration and input, then run the turn pipeline."""
    settings: Settings = request.app.state.settings
    missing = settings.missing_credentials()
    if missing:
        logging.error("API keys are not configured correctly. Missing: %s", ", ".join(missing))
        return TurnOutcome(
            status_code=500,
            segments=[ReplySegment(text=CONFIGURATION_ERROR_TEXT)],
            session_id=session_id,
        )

    if image is not None:
        try:
            image = await asyncio.to_thread(ImagePreprocessor().prepare, image)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    orchestrator = build_orchestrator(request.app.state)
    return await orchestrator.process_turn(
        TurnRequest(session_id=session_id, message=message, image=image, location=location)
    )

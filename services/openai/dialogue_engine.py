"""Description: Travel agent dialogue turns using OpenAI's Responses API."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from models.reply_models import ReplySegment
from models.session_models import ConversationEntry
from services.openai.media_inputs import build_inputs
from services.openai.response_parser import extract_text, extract_usage, parse_reply_segments
from utils.errors import ModelInvocationError


@dataclass
class DialogueResult:
    """Parsed segments plus the raw model text that gets persisted."""

    segments: List[ReplySegment]
    raw_text: str
    parsed_ok: bool
    usage: Dict[str, Optional[int]] = field(default_factory=dict)
    latency: float = 0.0


class DialogueEngine:
    """Drive one conversation turn against the language model."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-5-mini", timeout: float = 60.0) -> None:
        """Initialize the engine with an OpenAI async client."""
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.timeout = timeout

    async def reply(
        self,
        history: Sequence[ConversationEntry],
        user_entry: ConversationEntry,
        instruction: str,
    ) -> DialogueResult:
        """Send history plus the new turn and return parsed reply segments.

        Malformed output never raises; it yields a single fallback segment.
        A failure of the model call itself raises ModelInvocationError.
        """
        start_time = time.time()
        inputs = build_inputs(instruction, history, user_entry)
        response = await self._create_response(inputs)
        raw_text = extract_text(response)

        try:
            segments = parse_reply_segments(raw_text)
            parsed_ok = True
        except ValueError as exc:
            logging.error("Failed to parse model reply as JSON: %s. Raw reply: %r", exc, raw_text)
            segments = [ReplySegment.parse_fallback()]
            parsed_ok = False

        return DialogueResult(
            segments=segments,
            raw_text=raw_text,
            parsed_ok=parsed_ok,
            usage=extract_usage(response),
            latency=time.time() - start_time,
        )

    async def _create_response(self, inputs: List[Dict[str, Any]]) -> Any:
        """Send the request to the OpenAI Responses API in JSON mode."""
        try:
            return await self.client.responses.create(
                model=self.model,
                input=inputs,
                text={"format": {"type": "json_object"}},
                timeout=self.timeout,
            )
        except Exception as exc:
            logging.error("Error during OpenAI Responses API call: %s", exc)
            raise ModelInvocationError(str(exc)) from exc

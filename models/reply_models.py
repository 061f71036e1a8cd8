"""Reply segment and request-scoped models for a conversation turn."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

FACIAL_EXPRESSIONS = ("smile", "sad", "angry", "surprised", "funnyFace", "default")
ANIMATIONS = (
    "Talking_0",
    "Talking_1",
    "Talking_2",
    "Crying",
    "Laughing",
    "Rumba",
    "Idle",
    "Terrified",
    "Angry",
)

DEFAULT_EXPRESSION = "default"
DEFAULT_ANIMATION = "Talking_0"

PARSE_FALLBACK_TEXT = "I'm sorry, I had trouble processing that request. Could you try again?"
TURN_FAILURE_TEXT = "I'm sorry, I encountered an error processing your request. Please try again."
CONFIGURATION_ERROR_TEXT = "API keys are not configured correctly."


@dataclass
class ReplySegment:
    """One unit of the agent's reply, later enriched with audio and lip-sync data."""

    text: str
    facial_expression: str = DEFAULT_EXPRESSION
    animation: str = DEFAULT_ANIMATION
    audio: Optional[str] = None
    lipsync: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "facialExpression": self.facial_expression,
            "animation": self.animation,
            "audio": self.audio,
            "lipsync": self.lipsync,
        }

    @classmethod
    def parse_fallback(cls) -> "ReplySegment":
        return cls(text=PARSE_FALLBACK_TEXT, facial_expression="default", animation="Talking_0")

    @classmethod
    def turn_failure(cls) -> "ReplySegment":
        return cls(text=TURN_FAILURE_TEXT, facial_expression="sad", animation="Talking_0")


@dataclass
class Location:
    latitude: float
    longitude: float


@dataclass
class InlineImage:
    """Base64 image supplied with a user turn."""

    data: str
    mime_type: str


@dataclass
class TurnRequest:
    """Everything the client sends for one conversation turn."""

    session_id: str
    message: Optional[str] = None
    image: Optional[InlineImage] = None
    location: Optional[Location] = None


@dataclass
class TurnOutcome:
    """Status code and JSON body returned to the client for one turn."""

    status_code: int
    segments: List[ReplySegment] = field(default_factory=list)
    session_id: Optional[str] = None
    history: Optional[List[Dict[str, Any]]] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "messages": [segment.to_dict() for segment in self.segments],
            "sessionId": self.session_id,
        }
        if self.history is not None:
            body["history"] = self.history
        return body

"""Session domain models for travel agent conversations."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

USER_ROLE = "user"
MODEL_ROLE = "model"

GREETING_TEXT = "Hello"
WELCOME_REPLY = (
    '{"messages": [{"text": "Welcome! I\'m your personal travel agent. Where would you like to go?", '
    '"facialExpression": "smile", "animation": "Talking_1"}]}'
)


@dataclass
class ContentPart:
    """One part of a conversation entry: plain text or an inline image."""

    text: Optional[str] = None
    data: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.data is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.is_image:
            return {"inlineData": {"data": self.data, "mimeType": self.mime_type}}
        return {"text": self.text or ""}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ContentPart":
        inline = raw.get("inlineData")
        if inline:
            return cls(data=inline.get("data"), mime_type=inline.get("mimeType"))
        return cls(text=raw.get("text", ""))


@dataclass
class ConversationEntry:
    """A single user or model turn as stored in the session history."""

    role: str
    parts: List[ContentPart] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(part.text or "" for part in self.parts if not part.is_image)

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [part.to_dict() for part in self.parts]}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConversationEntry":
        return cls(
            role=raw.get("role", USER_ROLE),
            parts=[ContentPart.from_dict(part) for part in raw.get("parts") or []],
        )


def agent_id_from(value: Any) -> int:
    """Return a catalogue id from client input; anything non-numeric maps to 0."""
    if isinstance(value, bool):
        return 0
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class AgentDescriptor:
    """The travel agent persona selected for a session."""

    id: int
    title: str
    agent_prompt: str = ""
    voice_id: Optional[str] = None
    subscription_required: bool = False
    description: str = ""
    image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "agentPrompt": self.agent_prompt,
            "voiceId": self.voice_id,
            "subscriptionRequired": self.subscription_required,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AgentDescriptor":
        return cls(
            id=agent_id_from(raw.get("id")),
            title=raw.get("title") or "Travel Advisor",
            agent_prompt=raw.get("agentPrompt") or "",
            voice_id=raw.get("voiceId"),
            subscription_required=bool(raw.get("subscriptionRequired", False)),
            description=raw.get("description") or "",
            image=raw.get("image"),
        )


def default_history() -> List[ConversationEntry]:
    """Return the canonical greeting pair every conversation starts from."""
    return [
        ConversationEntry(role=USER_ROLE, parts=[ContentPart(text=GREETING_TEXT)]),
        ConversationEntry(role=MODEL_ROLE, parts=[ContentPart(text=WELCOME_REPLY)]),
    ]


@dataclass
class Session:
    """Stored state for one travel agent conversation."""

    session_id: str
    notes: str = ""
    selected_agent: Optional[AgentDescriptor] = None
    conversation: List[ConversationEntry] = field(default_factory=list)
    report: Optional[Dict[str, Any]] = None
    created_at: float = field(default_factory=lambda: time.time())
    last_active_at: float = field(default_factory=lambda: time.time())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "notes": self.notes,
            "selectedAgent": self.selected_agent.to_dict() if self.selected_agent else None,
            "conversation": [entry.to_dict() for entry in self.conversation],
            "report": self.report,
            "createdOn": self.created_at,
            "lastActiveAt": self.last_active_at,
        }

"""Utilities to build multimodal input payloads for the Responses API."""

from typing import Any, Dict, List, Optional, Sequence

from models.reply_models import InlineImage
from models.session_models import GREETING_TEXT, MODEL_ROLE, USER_ROLE, ContentPart, ConversationEntry


def to_image_data_url(data: str, mime_type: str) -> str:
    """Convert base64 image data into a data URL suitable for vision input."""
    return f"data:{mime_type or 'image/jpeg'};base64,{data}"


def build_user_entry(message: Optional[str], image: Optional[InlineImage]) -> ConversationEntry:
    """Compose the user's turn: trimmed text and/or one image, or the greeting."""
    parts: List[ContentPart] = []
    text = (message or "").strip()
    if text:
        parts.append(ContentPart(text=text))
    if image is not None:
        parts.append(ContentPart(data=image.data, mime_type=image.mime_type))
    if not parts:
        parts.append(ContentPart(text=GREETING_TEXT))
    return ConversationEntry(role=USER_ROLE, parts=parts)


def entry_to_input(entry: ConversationEntry) -> Dict[str, Any]:
    """Map a stored conversation entry onto a Responses API message."""
    if entry.role == MODEL_ROLE:
        return {
            "type": "message",
            "role": "assistant",
            "content": [{"type": "output_text", "text": entry.text}],
        }

    content: List[Dict[str, Any]] = []
    for part in entry.parts:
        if part.is_image:
            content.append({"type": "input_image", "image_url": to_image_data_url(part.data, part.mime_type)})
        else:
            content.append({"type": "input_text", "text": part.text or ""})
    return {"type": "message", "role": "user", "content": content}


def build_inputs(
    instruction: str,
    history: Sequence[ConversationEntry],
    user_entry: ConversationEntry,
) -> List[Dict[str, Any]]:
    """Build the Responses API input array: instructions, prior turns, new turn.

    History is passed through in stored order; roles are never reordered or dropped.
    """
    inputs: List[Dict[str, Any]] = [
        {
            "type": "message",
            "role": "system",
            "content": [{"type": "input_text", "text": instruction}],
        },
    ]
    inputs.extend(entry_to_input(entry) for entry in history)
    inputs.append(entry_to_input(user_entry))
    return inputs

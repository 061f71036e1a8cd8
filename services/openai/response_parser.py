"""Helpers to parse Responses API outputs."""

import json
import re
from typing import Any, Dict, List, Optional

from models.reply_models import (
    ANIMATIONS,
    DEFAULT_ANIMATION,
    DEFAULT_EXPRESSION,
    FACIAL_EXPRESSIONS,
    ReplySegment,
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def extract_text(response: Any) -> str:
    """Extract the first output_text entry from the response."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                return getattr(content, "text", "") or ""
    return getattr(response, "output_text", "") or ""


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding Markdown ```json fence, if any."""
    return _CODE_FENCE.sub("", raw.strip())


def parse_reply_segments(raw: str) -> List[ReplySegment]:
    """Parse `{"messages": [...]}` model output into reply segments.

    Raises:
        ValueError: If the text is not JSON or has no usable messages.
    """
    payload = json.loads(strip_code_fences(raw))
    if not isinstance(payload, dict) or not isinstance(payload.get("messages"), list):
        raise ValueError("Model reply is missing a 'messages' list.")

    segments: List[ReplySegment] = []
    for item in payload["messages"]:
        if not isinstance(item, dict):
            raise ValueError("Each reply message must be a JSON object.")
        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValueError("Each reply message needs non-empty text.")
        expression = item.get("facialExpression")
        animation = item.get("animation")
        segments.append(
            ReplySegment(
                text=text,
                facial_expression=expression if expression in FACIAL_EXPRESSIONS else DEFAULT_EXPRESSION,
                animation=animation if animation in ANIMATIONS else DEFAULT_ANIMATION,
            )
        )
    if not segments:
        raise ValueError("Model reply contained no messages.")
    return segments

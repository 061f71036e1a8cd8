"""Prompt builders for the travel agent conversation turn."""

from typing import Optional

from models.reply_models import ANIMATIONS, FACIAL_EXPRESSIONS
from services.places.nearby_places import LocationContext


def build_response_contract() -> str:
    """Return the JSON reply shape and the allowed tag values."""
    return (
        'Always reply with a valid JSON object: {"messages": [{"text": "...", '
        '"facialExpression": "...", "animation": "..."}]}.\n'
        f"FacialExpressions: {', '.join(FACIAL_EXPRESSIONS)}.\n"
        f"Animations: {', '.join(ANIMATIONS)}."
    )


def build_location_prompt(context: LocationContext) -> str:
    """Describe where the user is, distinguishing unknown from known-but-empty."""
    if not context.known:
        return "The user's current location is not available."
    if not context.places:
        return (
            "The user's current location is known, but no nearby restaurants, cafes or attractions "
            "were found around it."
        )
    return (
        "IMPORTANT: The user's CURRENT PHYSICAL LOCATION has these nearby places: "
        f"{', '.join(context.places)}. This is where they are RIGHT NOW, not necessarily what's in "
        "any image they might share."
    )


def build_image_prompt(has_image: bool) -> str:
    if not has_image:
        return ""
    return (
        "IMPORTANT: The user has shared an image. This image may show a DIFFERENT location than where "
        "they currently are. Analyze the image content and provide travel advice about what you see in "
        "the image, but remember to distinguish between their current location and the location shown "
        "in the image."
    )


def build_text_prompt(message: Optional[str]) -> str:
    text = (message or "").strip()
    if text:
        return f'User\'s message: "{text}"'
    return "The user has sent you an image or is greeting you."


def build_instruction(
    context: LocationContext,
    *,
    has_image: bool,
    message: Optional[str],
    agent_prompt: Optional[str] = None,
) -> str:
    """Return the full instruction block for one turn.

    The output depends only on the arguments, so identical inputs always
    produce identical text.
    """
    persona = (agent_prompt or "").strip()
    sections = [
        "You are a friendly travel agent with memory of our conversation.",
        persona,
        build_response_contract(),
        build_location_prompt(context),
        build_image_prompt(has_image),
        build_text_prompt(message),
        "CRITICAL INSTRUCTION: If the user shares an image of a place:\n"
        "1. Clearly distinguish between their current physical location and the location shown in the image\n"
        "2. If they ask about visiting the place in the image, provide advice about traveling FROM their "
        "current location TO the place in the image\n"
        "3. If they're asking about the place in the image itself, focus on that destination\n"
        "4. Don't keep it too long.",
        "Be enthusiastic and helpful, but always maintain clarity about location context!",
    ]
    return "\n\n".join(section for section in sections if section)


REPORT_SYSTEM_PROMPT = """You are an AI Travel Agent that just finished a voice conversation with a user. Based on the travel AI agent info and the conversation between the AI travel agent and the user, generate a structured travel report with the following fields:

1. agent: the travel specialist name (e.g., "CityExplorer AI")
2. user: name of the traveler or "Anonymous" if not provided
3. timestamp: current date and time in ISO format
4. tripPurpose: one-sentence summary of why the user is traveling (e.g., "sightseeing", "business", "family visit")
5. summary: a 2-3 sentence overview of the conversation, including key preferences and constraints
6. currentLocation: the user's last known GPS-derived location or city
7. recommendedItinerary: an ordered list of POIs or activities suggested, each with mode of transport and estimated times
8. transportationUpdates: list of any real-time issues mentioned (e.g., "subway delay on Line 2")
9. weatherAlerts: list of any weather conditions or forecasts that could affect travel
10. crowdAlerts: list of any crowd or obstruction warnings from the user's camera input
11. recommendations: list of AI suggestions (e.g., "visit the art gallery tomorrow morning")

Return the result in this exact JSON format (only include fields that have data):

{
  "agent": "string",
  "user": "string",
  "timestamp": "ISO Date string",
  "tripPurpose": "string",
  "summary": "string",
  "currentLocation": "string",
  "recommendedItinerary": [{"place": "string", "mode": "string", "eta": "string"}],
  "transportationUpdates": ["string"],
  "weatherAlerts": ["string"],
  "crowdAlerts": ["string"],
  "recommendations": ["string"]
}

Respond with nothing else."""

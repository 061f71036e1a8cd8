"""Catalogue of travel agent personas a session can be started with."""

from typing import List, Optional

from models.session_models import AgentDescriptor

AI_TRAVEL_AGENTS: List[AgentDescriptor] = [
    AgentDescriptor(
        id=1,
        title="Travel Advisor",
        description="Helps you plan trips, find destinations, and book travel experiences.",
        image="/travel1.jpg",
        agent_prompt=(
            "You are a friendly AI Travel Advisor. Greet the user and ask about their travel interests "
            "or upcoming trips. Offer helpful, concise suggestions for destinations, activities, and travel tips."
        ),
        voice_id="alloy",
        subscription_required=False,
    ),
    AgentDescriptor(
        id=2,
        title="City Explorer",
        description="Finds food, sights, and hidden spots around you right now.",
        image="/travel2.jpg",
        agent_prompt=(
            "You are an upbeat local city guide. Focus on what the user can reach on foot or by public "
            "transport from where they are, and keep suggestions short and practical."
        ),
        voice_id="nova",
        subscription_required=True,
    ),
]


def find_agent(agent_id: int) -> Optional[AgentDescriptor]:
    for agent in AI_TRAVEL_AGENTS:
        if agent.id == agent_id:
            return agent
    return None

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ItineraryStop:
    place: str
    mode: Optional[str] = None
    eta: Optional[str] = None


@dataclass
class TravelReport:
    """Structured summary generated once a conversation has finished.

    Attributes:
        agent: Name of the travel specialist persona.
        user: Traveler name, or "Anonymous".
        timestamp: ISO timestamp the report was produced.
        trip_purpose: One-sentence reason for travelling.
        summary: Short overview of preferences and constraints.
        current_location: Last known location or city of the user.
        recommended_itinerary: Ordered stops with transport mode and estimated time.
        transportation_updates: Real-time transport issues mentioned.
        weather_alerts: Weather conditions that could affect the trip.
        crowd_alerts: Crowd or obstruction warnings.
        recommendations: Suggestions made by the agent.
    """

    agent: Optional[str] = None
    user: Optional[str] = None
    timestamp: Optional[str] = None
    trip_purpose: Optional[str] = None
    summary: Optional[str] = None
    current_location: Optional[str] = None
    recommended_itinerary: List[ItineraryStop] = field(default_factory=list)
    transportation_updates: List[str] = field(default_factory=list)
    weather_alerts: List[str] = field(default_factory=list)
    crowd_alerts: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    _SCALARS = (
        ("agent", "agent"),
        ("user", "user"),
        ("timestamp", "timestamp"),
        ("trip_purpose", "tripPurpose"),
        ("summary", "summary"),
        ("current_location", "currentLocation"),
    )
    _LISTS = (
        ("transportation_updates", "transportationUpdates"),
        ("weather_alerts", "weatherAlerts"),
        ("crowd_alerts", "crowdAlerts"),
        ("recommendations", "recommendations"),
    )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TravelReport":
        """Build a report from model output, ignoring fields of the wrong shape."""
        if not isinstance(raw, dict):
            raise ValueError("Travel report must be a JSON object.")
        report = cls()
        for attr, key in cls._SCALARS:
            value = raw.get(key)
            if isinstance(value, (str, int, float)):
                setattr(report, attr, str(value))
        for attr, key in cls._LISTS:
            value = raw.get(key)
            if isinstance(value, list):
                setattr(report, attr, [str(item) for item in value if item is not None])
        itinerary = raw.get("recommendedItinerary")
        for stop in itinerary if isinstance(itinerary, list) else []:
            if isinstance(stop, dict) and stop.get("place"):
                report.recommended_itinerary.append(
                    ItineraryStop(place=str(stop["place"]), mode=stop.get("mode"), eta=stop.get("eta"))
                )
        return report

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the wire field names, omitting fields without data."""
        out: Dict[str, Any] = {}
        for attr, key in self._SCALARS:
            value = getattr(self, attr)
            if value:
                out[key] = value
        if self.recommended_itinerary:
            out["recommendedItinerary"] = [
                {k: v for k, v in (("place", s.place), ("mode", s.mode), ("eta", s.eta)) if v}
                for s in self.recommended_itinerary
            ]
        for attr, key in self._LISTS:
            value = getattr(self, attr)
            if value:
                out[key] = list(value)
        return out

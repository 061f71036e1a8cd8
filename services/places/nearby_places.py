"""Nearby points of interest used to ground the agent's replies."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx

from models.reply_models import Location

PLACES_URL = "https://places.googleapis.com/v1/places:searchNearby"
SEARCH_RADIUS_METERS = 1500.0
INCLUDED_TYPES = ["restaurant", "tourist_attraction", "cafe"]
MAX_RESULTS = 10
FIELD_MASK = "places.displayName,places.primaryTypeDisplayName"


@dataclass
class LocationContext:
    """Grounding context for one turn.

    `known` is False when the client sent no coordinates, which the prompt
    phrases differently from a known location with no places found.
    """

    known: bool
    places: List[str] = field(default_factory=list)

    @classmethod
    def unknown(cls) -> "LocationContext":
        return cls(known=False)


def _format_place(place: Any) -> Optional[str]:
    """Return "Name (Type)" for one place, or None when the entry is malformed."""
    if not isinstance(place, dict):
        return None
    display = place.get("displayName")
    name = display.get("text") if isinstance(display, dict) else None
    if not isinstance(name, str) or not name:
        return None
    primary = place.get("primaryTypeDisplayName")
    kind = primary.get("text") if isinstance(primary, dict) else None
    return f"{name} ({kind})" if isinstance(kind, str) and kind else name


class NearbyPlacesService:
    """Query the places provider around the user's current coordinates."""

    def __init__(self, client: httpx.AsyncClient, api_key: str, *, timeout: float = 10.0) -> None:
        if client is None:
            raise ValueError("An httpx.AsyncClient is required for places lookups.")
        self.client = client
        self.api_key = api_key
        self.timeout = timeout

    async def lookup(self, location: Optional[Location]) -> LocationContext:
        """Return nearby places; provider failures degrade to an empty list."""
        if location is None:
            logging.info("No current location provided; skipping nearby places search.")
            return LocationContext.unknown()

        body = {
            "includedTypes": INCLUDED_TYPES,
            "maxResultCount": MAX_RESULTS,
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": location.latitude, "longitude": location.longitude},
                    "radius": SEARCH_RADIUS_METERS,
                },
            },
        }
        headers = {"X-Goog-Api-Key": self.api_key, "X-Goog-FieldMask": FIELD_MASK}

        try:
            response = await self.client.post(PLACES_URL, json=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logging.error("Places lookup failed for %s,%s: %s", location.latitude, location.longitude, exc)
            return LocationContext(known=True)

        raw_places = data.get("places") if isinstance(data, dict) else None
        if not isinstance(raw_places, list):
            logging.warning("Places provider returned no places or unexpected data: %r", data)
            return LocationContext(known=True)

        places = [name for name in (_format_place(p) for p in raw_places) if name]
        if len(places) < len(raw_places):
            logging.warning("Skipped %d malformed place entries.", len(raw_places) - len(places))
        logging.info("Fetched %d nearby places.", len(places))
        return LocationContext(known=True, places=places[:MAX_RESULTS])

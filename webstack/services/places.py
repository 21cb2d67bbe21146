from __future__ import annotations

import logging
from typing import Any, Optional

from webstack.config import settings
from webstack.errors import ConfigurationError
from webstack.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

AUTOCOMPLETE_URL = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
MIN_AUTOCOMPLETE_INPUT = 3


def _component(components: list[dict[str, Any]], types: tuple[str, ...]) -> str:
    for component in components:
        if any(kind in (component.get("types") or []) for kind in types):
            return component.get("short_name") or component.get("long_name") or ""
    return ""


def parse_place_details(place_id: str, result: dict[str, Any]) -> dict[str, Any]:
    components = result.get("address_components") or []
    street_number = _component(components, ("street_number",))
    street_name = _component(components, ("route",))
    return {
        "placeId": place_id,
        "streetAddress": " ".join(part for part in (street_number, street_name) if part),
        "city": _component(components, ("locality", "sublocality", "administrative_area_level_3")),
        "state": _component(components, ("administrative_area_level_1",)),
        "postalCode": _component(components, ("postal_code",)),
        "formattedAddress": result.get("formatted_address"),
    }


class PlacesClient(UpstreamClient):
    service_name = "Google Places"

    def _api_key(self) -> str:
        if not settings.GOOGLE_PLACES_API_KEY:
            logger.error("GOOGLE_PLACES_API_KEY not configured")
            raise ConfigurationError("Places API not configured")
        return settings.GOOGLE_PLACES_API_KEY

    async def autocomplete(self, *, text: Optional[str], session_token: Optional[str] = None) -> dict[str, Any]:
        api_key = self._api_key()
        if not text or len(text) < MIN_AUTOCOMPLETE_INPUT:
            return {"predictions": []}

        params = {"input": text, "key": api_key, "types": "address", "components": "country:us"}
        if session_token:
            params["sessiontoken"] = session_token
        data = await self._json_object("GET", AUTOCOMPLETE_URL, params=params)

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.warning("Places autocomplete error", extra={"status": status})
            return {"error": data.get("error_message") or status, "predictions": []}

        predictions = [
            {
                "place_id": prediction.get("place_id"),
                "description": prediction.get("description"),
                "structured_formatting": prediction.get("structured_formatting"),
            }
            for prediction in data.get("predictions") or []
        ]
        return {"predictions": predictions}

    async def details(self, *, place_id: str, session_token: Optional[str] = None) -> dict[str, Any]:
        params = {
            "place_id": place_id,
            "key": self._api_key(),
            "fields": "formatted_address,address_components,geometry",
        }
        if session_token:
            params["sessiontoken"] = session_token
        data = await self._json_object("GET", DETAILS_URL, params=params)

        if data.get("status") != "OK":
            logger.warning("Places details error", extra={"status": data.get("status")})
            return {"error": data.get("error_message") or data.get("status")}
        return parse_place_details(place_id, data.get("result") or {})

from __future__ import annotations

from fastapi import APIRouter

from webstack.errors import FunctionError
from webstack.schemas.places import PlacesRequest
from webstack.services.places import PlacesClient

router = APIRouter(prefix="/functions", tags=["places"])

places_client = PlacesClient()


@router.post("/places-autocomplete")
async def places_autocomplete(payload: PlacesRequest):
    if payload.action == "autocomplete":
        return await places_client.autocomplete(text=payload.input, session_token=payload.sessionToken)
    if payload.action == "details":
        if not payload.placeId:
            raise FunctionError(message="placeId required", status_code=400)
        return await places_client.details(place_id=payload.placeId, session_token=payload.sessionToken)
    raise FunctionError(message='Invalid action. Use "autocomplete" or "details"', status_code=400)

from __future__ import annotations

import logging

from fastapi import APIRouter

from webstack.errors import FunctionError, UpstreamApiError
from webstack.schemas.bron import (
    BronApiRequest,
    BronDashboardRequest,
    BronDashboardResponse,
    BronFeedRequest,
)
from webstack.services.bron_api import BronApiClient
from webstack.services.bron_dashboard import load_dashboard

router = APIRouter(tags=["bron"])
logger = logging.getLogger(__name__)

bron_client = BronApiClient()


@router.post("/functions/bron-api")
async def bron_api(payload: BronApiRequest):
    if not payload.domain:
        raise FunctionError(message="Domain is required", status_code=400)
    try:
        data = await bron_client.fetch(domain=payload.domain, endpoint=payload.endpoint)
    except UpstreamApiError as exc:
        raise FunctionError(
            message=str(exc),
            status_code=exc.status_code,
            details=exc.details,
            endpoint=payload.endpoint,
        ) from exc
    return {"success": True, "data": data, "endpoint": payload.endpoint}


@router.post("/functions/bron-feed")
async def bron_feed(payload: BronFeedRequest):
    if not payload.domain:
        raise FunctionError(message="Domain is required", status_code=400)
    try:
        data = await bron_client.fetch(domain=payload.domain, endpoint="articles")
    except UpstreamApiError as exc:
        raise FunctionError(
            message=f"BRON API returned {exc.status_code}",
            status_code=exc.status_code,
            details=exc.details,
        ) from exc
    logger.info(
        "BRON feed fetched",
        extra={"domain": payload.domain, "items": len(data) if isinstance(data, list) else None},
    )
    return {"success": True, "data": data}


@router.post("/bron/dashboard", response_model=BronDashboardResponse)
async def bron_dashboard(payload: BronDashboardRequest):
    # Fail fast on missing credentials instead of reporting ten identical feed errors.
    bron_client.build_request(domain=payload.domain, endpoint="articles")
    return await load_dashboard(bron_client, payload.domain)

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Header

from webstack.config import settings
from webstack.errors import FunctionError, UpstreamApiError
from webstack.schemas.cade import CadeApiRequest
from webstack.services.cade_api import CadeApiClient

router = APIRouter(prefix="/functions", tags=["cade"])

cade_client = CadeApiClient()


@router.post("/cade-api")
async def cade_api(
    payload: CadeApiRequest,
    x_cade_secret: Optional[str] = Header(default=None),
):
    secret = x_cade_secret or settings.CADE_API_SECRET
    if not secret:
        raise FunctionError(message="CADE API secret not configured", status_code=401)
    if not payload.action:
        raise FunctionError(message="Action is required", status_code=400)
    try:
        data = await cade_client.call(
            action=payload.action,
            secret=secret,
            domain=payload.domain,
            params=payload.params,
        )
    except UpstreamApiError as exc:
        raise FunctionError(
            message=str(exc),
            status_code=exc.status_code,
            details=exc.details,
            action=payload.action,
        ) from exc
    return {"success": True, "data": data, "action": payload.action}

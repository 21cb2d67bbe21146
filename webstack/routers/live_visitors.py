from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from webstack.auth.dependencies import AuthContext, get_optional_user
from webstack.db.deps import get_session
from webstack.schemas.tracking import LiveVisitorOut, LiveVisitorsResponse
from webstack.services.live_visitors import DEFAULT_LIMIT, list_live_visitors
from webstack.services.session_ids import SESSION_COOKIE_NAME

router = APIRouter(prefix="/visitors", tags=["visitors"])


@router.get("/live", response_model=LiveVisitorsResponse)
def live_visitors(
    request: Request,
    session_id: Optional[str] = Query(default=None),
    domain: Optional[str] = Query(default=None),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=50),
    session: Session = Depends(get_session),
    auth: Optional[AuthContext] = Depends(get_optional_user),
):
    visitors = list_live_visitors(
        session,
        current_user_id=auth.user_id if auth else None,
        session_id=session_id or request.cookies.get(SESSION_COOKIE_NAME),
        domain=domain,
        limit=limit,
    )
    return LiveVisitorsResponse(
        visitors=[LiveVisitorOut(**asdict(visitor)) for visitor in visitors],
        count=len(visitors),
    )

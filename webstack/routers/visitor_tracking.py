from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webstack.auth.dependencies import AuthContext, get_optional_user
from webstack.db.deps import get_session
from webstack.db.repositories.visitor_tracking import (
    FormSubmissionsRepository,
    LeadsRepository,
    PageViewsRepository,
    ToolInteractionsRepository,
    VisitorSessionsRepository,
)
from webstack.errors import FunctionError
from webstack.schemas.tracking import (
    FormSubmissionRequest,
    LeadRequest,
    RecordCreatedResponse,
    ToolInteractionRequest,
    VisitorSessionTrackRequest,
    VisitorSessionTrackResponse,
)
from webstack.services.session_ids import (
    SESSION_COOKIE_MAX_AGE,
    SESSION_COOKIE_NAME,
    generate_session_id,
    hash_ip,
)

router = APIRouter(tags=["tracking"])
logger = logging.getLogger(__name__)

_FAILURE_MESSAGES = {
    "init": "Failed to init session",
    "touch": "Failed to touch session",
    "page_view": "Failed to track page view",
}


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _remember_session(response: Response, session_id: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        session_id,
        max_age=SESSION_COOKIE_MAX_AGE,
        path="/",
        samesite="lax",
    )


@router.post("/functions/visitor-session-track", response_model=VisitorSessionTrackResponse)
def track_visitor_session(
    payload: VisitorSessionTrackRequest,
    request: Request,
    response: Response,
    session: Session = Depends(get_session),
    auth: Optional[AuthContext] = Depends(get_optional_user),
):
    session_id = payload.session_id or (request.cookies.get(SESSION_COOKIE_NAME) or "").strip()
    if not session_id and payload.action == "init":
        session_id = generate_session_id()
    if not payload.action or not session_id:
        raise FunctionError(message="Missing action/session_id", status_code=400)
    if payload.action == "page_view" and not payload.page_path:
        raise FunctionError(message="Missing page_path", status_code=400)

    user_id = auth.user_id if auth else None
    recovered = False
    try:
        if payload.action == "init":
            VisitorSessionsRepository(session).init_session(
                session_id=session_id,
                first_page=payload.first_page,
                referrer=payload.referrer,
                user_agent=payload.user_agent or request.headers.get("user-agent"),
                ip_hash=hash_ip(_client_ip(request)),
                domain=payload.domain,
                user_id=user_id,
            )
        elif payload.action == "touch":
            recovered = not VisitorSessionsRepository(session).touch(
                session_id=session_id,
                user_id=user_id,
                first_page=payload.first_page,
                referrer=payload.referrer,
                user_agent=payload.user_agent or request.headers.get("user-agent"),
            )
            if recovered:
                logger.info("Recreated missing visitor session", extra={"session_id": session_id})
        else:
            PageViewsRepository(session).create(
                session_id=session_id,
                page_path=payload.page_path,
                page_title=payload.page_title,
                time_on_page=payload.time_on_page,
                scroll_depth=payload.scroll_depth,
            )
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception(
            "Visitor tracking write failed",
            extra={"action": payload.action, "session_id": session_id},
        )
        raise FunctionError(message=_FAILURE_MESSAGES[payload.action], status_code=500) from exc

    _remember_session(response, session_id)
    return VisitorSessionTrackResponse(session_id=session_id, recovered=recovered)


def _resolve_session_id(request: Request, session_id: Optional[str]) -> Optional[str]:
    return session_id or request.cookies.get(SESSION_COOKIE_NAME)


@router.post("/tracking/tool-interactions", response_model=RecordCreatedResponse)
def track_tool_interaction(
    payload: ToolInteractionRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    session_id = _resolve_session_id(request, payload.session_id)
    if not session_id:
        raise FunctionError(message="Missing session_id", status_code=400)
    row = ToolInteractionsRepository(session).create(
        session_id=session_id,
        tool_name=payload.tool_name,
        tool_type=payload.tool_type,
        page_path=payload.page_path,
        metadata=payload.metadata,
    )
    return RecordCreatedResponse(id=str(row.id))


@router.post("/tracking/form-submissions", response_model=RecordCreatedResponse)
def track_form_submission(
    payload: FormSubmissionRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    row = FormSubmissionsRepository(session).create(
        session_id=_resolve_session_id(request, payload.session_id),
        form_name=payload.form_name,
        form_data=payload.form_data,
        page_path=payload.page_path,
    )
    return RecordCreatedResponse(id=str(row.id))


@router.post("/tracking/leads", response_model=RecordCreatedResponse)
def save_lead(payload: LeadRequest, session: Session = Depends(get_session)):
    row = LeadsRepository(session).create(
        email=payload.email,
        phone=payload.phone,
        domain=payload.domain,
        metric_type=payload.metric_type,
        source_page=payload.source_page,
    )
    logger.info("Lead captured", extra={"domain": payload.domain, "metric_type": payload.metric_type})
    return RecordCreatedResponse(id=str(row.id))

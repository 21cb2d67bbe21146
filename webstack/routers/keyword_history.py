from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webstack.db.deps import get_session
from webstack.errors import FunctionError
from webstack.schemas.keyword_history import KeywordHistoryRequest
from webstack.services import keyword_history

router = APIRouter(prefix="/functions", tags=["keywords"])
logger = logging.getLogger(__name__)


@router.post("/keyword-history-snapshot")
def keyword_history_snapshot(payload: KeywordHistoryRequest, session: Session = Depends(get_session)):
    if payload.action == "saveSnapshot":
        if not payload.domain or payload.keywords is None:
            raise FunctionError(message="Domain and keywords array required", status_code=400)
        try:
            return keyword_history.save_snapshot(
                session,
                domain=payload.domain,
                keywords=[keyword.model_dump() for keyword in payload.keywords],
                force=payload.force,
            )
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to insert keyword snapshot", extra={"domain": payload.domain})
            raise FunctionError(message="Failed to save snapshot", status_code=500, details=str(exc)) from exc

    if payload.action == "getHistory":
        if not payload.domain or not payload.keyword:
            raise FunctionError(message="Domain and keyword required", status_code=400)
        history = keyword_history.keyword_history(
            session, domain=payload.domain, keyword=payload.keyword, limit=payload.limit
        )
        return {"success": True, "history": history}

    if payload.action == "getDomainHistory":
        if not payload.domain:
            raise FunctionError(message="Domain required", status_code=400)
        return {"success": True, "historyByKeyword": keyword_history.domain_history(session, domain=payload.domain)}

    raise FunctionError(message="Unknown action", status_code=400)

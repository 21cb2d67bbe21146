from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from webstack.db.deps import get_session
from webstack.db.repositories.visitor_tracking import FormSubmissionsRepository
from webstack.errors import FunctionError
from webstack.schemas.forms import FORM_SCHEMAS, field_errors, sanitize_form_data
from webstack.services.session_ids import SESSION_COOKIE_NAME

router = APIRouter(prefix="/forms", tags=["forms"])
logger = logging.getLogger(__name__)


@router.post("/{form_name}")
def submit_form(
    form_name: str,
    request: Request,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
):
    schema = FORM_SCHEMAS.get(form_name)
    if schema is None:
        raise FunctionError(message=f"Unknown form: {form_name}", status_code=404)

    session_id = payload.pop("session_id", None) or request.cookies.get(SESSION_COOKIE_NAME)
    page_path = payload.pop("page_path", None)
    try:
        form = schema.model_validate(payload)
    except ValidationError as exc:
        errors = field_errors(exc)
        raise FunctionError(
            message=next(iter(errors.values()), "Invalid form data"),
            status_code=400,
            fieldErrors=errors,
        ) from exc

    FormSubmissionsRepository(session).create(
        session_id=session_id if isinstance(session_id, str) else None,
        form_name=form_name,
        form_data=sanitize_form_data(form.model_dump(exclude_none=True)),
        page_path=page_path if isinstance(page_path, str) else None,
    )
    logger.info("Form submitted", extra={"form_name": form_name})
    return {"success": True}

from __future__ import annotations

import json
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webstack.auth.dependencies import AuthContext, get_current_user
from webstack.db.deps import get_session
from webstack.errors import ConfigurationError, FunctionError, UpstreamApiError
from webstack.schemas.ai_assistant import DashboardAssistantRequest, UsageResponse, VisitorChatRequest
from webstack.services import ai_assistant, assistant_tools
from webstack.services.ai_usage import MESSAGE_MINUTES, TOOL_CALL_MINUTES, record_usage, summarize_usage
from webstack.services.rate_limit import client_id_from_request, enforce, limiter

router = APIRouter(prefix="/functions", tags=["ai"])
logger = logging.getLogger(__name__)

VISITOR_CHAT_LIMIT = 20
DASHBOARD_ASSISTANT_LIMIT = 30
RATE_WINDOW_SECONDS = 60

TOOL_ERROR_GUIDANCE = (
    "\n\nSome tools may have returned errors. When a tool fails, say so briefly and still give "
    "actionable advice from what you know."
)


@router.post("/ai-assistant")
async def visitor_assistant(
    payload: VisitorChatRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    chat = ai_assistant.VisitorChat(session=session, chat_gateway=ai_assistant.gateway)
    if payload.health_check:
        return chat.health()

    enforce(
        limiter.check(
            client_id_from_request(request),
            max_requests=VISITOR_CHAT_LIMIT,
            window_seconds=RATE_WINDOW_SECONDS,
            prefix="ai-assistant",
        )
    )

    visitor = payload.visitorInfo
    try:
        if payload.action == "start_session":
            if not payload.sessionId:
                raise FunctionError(message="Missing sessionId", status_code=400)
            return chat.start_session(
                payload.sessionId,
                visitor_name=visitor.name if visitor else None,
                visitor_email=visitor.email if visitor else None,
                current_page=visitor.currentPage if visitor else None,
            )
        if payload.action == "request_human":
            return chat.request_human(payload.sessionId or "", payload.message)
        if payload.action == "show_booking":
            return chat.show_booking(payload.sessionId or "")

        if not payload.message:
            raise FunctionError(message="Message is required", status_code=400)
        return await chat.reply(
            payload.sessionId,
            ai_assistant.sanitize_content(payload.message),
            visitor_name=visitor.name if visitor else None,
            current_page=visitor.currentPage if visitor else None,
        )
    except UpstreamApiError as exc:
        if exc.status_code == 429:
            raise FunctionError(
                message="We're experiencing high demand. Please try again in a moment.", status_code=429
            ) from exc
        if exc.status_code == 402:
            raise FunctionError(
                message="Service temporarily unavailable. Please try again later.", status_code=402
            ) from exc
        raise FunctionError(
            message=str(exc), status_code=500, fallbackMessage=ai_assistant.FALLBACK_MESSAGE
        ) from exc
    except (ConfigurationError, SQLAlchemyError) as exc:
        session.rollback()
        logger.exception("Visitor assistant failed", extra={"action": payload.action})
        raise FunctionError(
            message=str(exc) or "Unknown error", status_code=500, fallbackMessage=ai_assistant.FALLBACK_MESSAGE
        ) from exc


@router.post("/webstack-ai-assistant", response_model=None)
async def dashboard_assistant(
    payload: DashboardAssistantRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    rate = limiter.check(
        auth.user_id,
        max_requests=DASHBOARD_ASSISTANT_LIMIT,
        window_seconds=RATE_WINDOW_SECONDS,
        prefix="webstack-ai-assistant",
    )
    if not rate.allowed:
        logger.warning("Assistant rate limit exceeded", extra={"user_id": auth.user_id})
        raise FunctionError(
            message="Too many requests. Please slow down.",
            status_code=429,
            headers=rate.headers(),
            retryAfterMs=(rate.retry_after or RATE_WINDOW_SECONDS) * 1000,
        )

    messages = ai_assistant.sanitize_messages(payload.messages)
    model = ai_assistant.select_model(payload.model)
    usage = summarize_usage(session, auth.user_id)
    if payload.checkUsage:
        return UsageResponse(**asdict(usage))
    if usage.limit_reached:
        raise FunctionError(
            message="Usage limit reached",
            status_code=402,
            minutesUsed=usage.minutesUsed,
            minutesLimit=usage.minutesLimit,
            tier=usage.tier,
            upgradeRequired=True,
        )

    context = assistant_tools.build_domain_context(session, auth.user_id, payload.domain)
    prompt = ai_assistant.dashboard_system_prompt(
        auth.email, payload.domain, assistant_tools.describe_context(context, payload.domain)
    )
    conversation = [{"role": "system", "content": prompt}, *messages]

    try:
        tool_message = await ai_assistant.gateway.request_tool_calls(
            conversation, model=model, tools=assistant_tools.ASSISTANT_TOOLS
        )
    except UpstreamApiError as exc:
        # Fall through to a plain streamed answer.
        logger.warning("Assistant tool pass failed", extra={"user_id": auth.user_id, "status": exc.status_code})
        tool_message = None

    minutes = MESSAGE_MINUTES
    if tool_message is not None:
        results = assistant_tools.execute_tool_calls(
            session, tool_message.tool_calls, user_id=auth.user_id, tier=usage.tier
        )
        logger.info(
            "Assistant tools executed",
            extra={"user_id": auth.user_id, "failed": sum(1 for result in results if "error" in result)},
        )
        conversation = [
            {"role": "system", "content": prompt + TOOL_ERROR_GUIDANCE},
            *messages,
            assistant_tools.tool_call_message(tool_message),
            *(
                {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result, default=str)}
                for call, result in zip(tool_message.tool_calls, results)
            ),
        ]
        minutes = TOOL_CALL_MINUTES

    try:
        frames = await ai_assistant.gateway.open_stream(conversation, model=model)
    except UpstreamApiError as exc:
        if tool_message is not None:
            raise FunctionError(
                message="AI service temporarily unavailable. Please try again.", status_code=500
            ) from exc
        if exc.status_code == 429:
            raise FunctionError(message="Rate limit exceeded. Please try again later.", status_code=429) from exc
        if exc.status_code == 402:
            raise FunctionError(message="AI credits exhausted. Please contact support.", status_code=402) from exc
        raise FunctionError(message="AI service unavailable", status_code=500) from exc

    record_usage(session, auth.user_id, minutes)
    logger.info("Assistant stream started", extra={"user_id": auth.user_id, "model": model, "minutes": minutes})
    return StreamingResponse(frames, media_type="text/event-stream")

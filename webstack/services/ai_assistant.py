"""Chat assistants backed by the OpenAI-compatible AI gateway.

Two callers share the gateway client:

* the public visitor chat, which keeps its transcript in ``ai_chat_messages``
  and signals booking or human handoff through inline ``[ACTION:*]`` markers;
* the signed-in dashboard assistant, which may answer tool calls from
  ``webstack.services.assistant_tools`` before streaming the completion as
  server-sent events, and is metered in weekly minutes (see ``webstack.services.ai_usage``).
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import openai
from openai import AsyncOpenAI
from sqlalchemy.orm import Session

from webstack.config import settings
from webstack.db.enums import ChatRoleEnum, ChatSessionStatusEnum
from webstack.db.repositories.ai_chat import AiChatRepository
from webstack.errors import ConfigurationError, UpstreamApiError

logger = logging.getLogger(__name__)

ALLOWED_MODELS = (
    "google/gemini-3-flash-preview",
    "google/gemini-2.5-flash",
    "google/gemini-2.5-flash-lite",
    "google/gemini-2.5-pro",
    "openai/gpt-5-mini",
    "openai/gpt-5-nano",
)
MAX_MESSAGE_CHARS = 10000
MAX_HISTORY_MESSAGES = 50
CHAT_HISTORY_LIMIT = 20

BOOKING_MARKER = "[ACTION:BOOKING]"
HUMAN_MARKER = "[ACTION:HUMAN]"

GREETING = (
    "Hi! I'm the WebStack CEO AI assistant. I can help you with questions about our SEO services, "
    "pricing, features, or I can connect you with a human team member. What would you like to know?"
)
HANDOFF_MESSAGE = "I'm connecting you with a team member now. They'll join this chat shortly!"
BOOKING_MESSAGE = "Great! Here's our booking calendar. Pick a time that works for you:"
EMPTY_REPLY = "I'm sorry, I couldn't process that. Would you like to speak with a team member?"
FALLBACK_MESSAGE = "I'm having trouble right now. Would you like me to connect you with a team member instead?"

_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")

WEBSITE_KNOWLEDGE = """
# WebStack CEO - AI SEO & Marketing Platform

WebStack CEO helps businesses improve their online visibility, drive organic traffic
and convert visitors into leads.

## Services
- On-page SEO: meta tags, header structure, internal linking, content quality.
- Off-page SEO: backlink building and monitoring, domain authority.
- BRON domain authority building: link campaigns, content clustering.
- CADE content automation: AI blog generation, FAQs, social signals.
- Visitor intelligence: company identification, engagement scoring, live alerts.
- Google Business Profile optimization and local SEO.
- Analytics, web hosting, uptime monitoring and PPC landing pages.

## Plans
- Starter, $99/month: basic audit, 5 tracked keywords, monthly reports.
- Professional, $299/month: full SEO suite, 50 tracked keywords, visitor intelligence.
- Enterprise: custom pricing, dedicated manager, white-label options.

## FAQs
- SEO results typically take 3-6 months; some quick wins land within weeks.
- A free website audit is available.
- Plans are month-to-month and can be cancelled anytime.
"""


def sanitize_content(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return ""
    return _CONTROL_CHARS.sub("", value)[:MAX_MESSAGE_CHARS]


def sanitize_messages(messages: Any) -> list[dict[str, str]]:
    """Strip control characters from each message and keep the most recent ones."""
    if not isinstance(messages, list):
        return []
    cleaned = []
    for message in messages:
        if not isinstance(message, dict):
            continue
        cleaned.append({**message, "content": sanitize_content(message.get("content") or "")})
    return cleaned[-MAX_HISTORY_MESSAGES:]


def select_model(model: Optional[str]) -> str:
    return model if model in ALLOWED_MODELS else settings.AI_DEFAULT_MODEL


@dataclass
class AssistantReply:
    message: str
    showCalendly: bool = False
    requestHuman: bool = False


def extract_actions(text: Optional[str]) -> AssistantReply:
    """Strip action markers from a model reply and report which ones were present."""
    reply = AssistantReply(message=text or EMPTY_REPLY)
    if BOOKING_MARKER in reply.message:
        reply.showCalendly = True
        reply.message = reply.message.replace(BOOKING_MARKER, "", 1).strip()
        if not reply.message:
            reply.message = "Great! Let me pull up our booking calendar for you:"
    if HUMAN_MARKER in reply.message:
        reply.requestHuman = True
        reply.message = reply.message.replace(HUMAN_MARKER, "", 1).strip()
        if not reply.message:
            reply.message = "I'll connect you with a team member right away!"
    return reply


def visitor_system_prompt(current_page: Optional[str], visitor_name: Optional[str]) -> str:
    return f"""You are a helpful AI assistant for WebStack CEO, an AI-powered SEO and marketing platform.

Your knowledge base:
{WEBSITE_KNOWLEDGE}

Guidelines:
1. Be friendly, professional, and concise
2. Answer questions about services, pricing, and features using the knowledge base
3. If the user wants to book a call/demo/consultation, respond with: {BOOKING_MARKER}
4. If the user explicitly asks for a human or seems frustrated, respond with: {HUMAN_MARKER}
5. Keep responses under 150 words unless more detail is needed
6. If you don't know something, offer to connect them with a human

Current page: {current_page or 'Unknown'}
Visitor name: {visitor_name or 'Guest'}"""


def dashboard_system_prompt(user_email: Optional[str], domain: Optional[str], context: str = "") -> str:
    prompt = (
        "You are Webstack AI - a friendly, expert SEO assistant. Be concise and action-oriented.\n\n"
        "- Keep responses short (2-4 sentences for simple questions)\n"
        "- Use bullet points for lists, not paragraphs\n"
        "- Get to the point quickly\n"
        "- For data requests, call the tools first and show the results\n"
    )
    if domain:
        prompt += f"\nSelected domain: {domain}. Use it automatically and start responses with **{domain}** - "
    else:
        prompt += "\nNo domain is selected. Ask the user to pick one from the dashboard dropdown."
    if context:
        prompt += f"\n\n{context}"
    if user_email:
        prompt += f"\nUser: {user_email}"
    return prompt


class ChatGateway:
    """Thin async wrapper over the gateway's chat completions endpoint."""

    def __init__(self, client: Optional[AsyncOpenAI] = None) -> None:
        self._openai_client = client

    @property
    def configured(self) -> bool:
        return self._openai_client is not None or bool(settings.AI_GATEWAY_API_KEY)

    def _client(self) -> AsyncOpenAI:
        if self._openai_client is None:
            if not settings.AI_GATEWAY_API_KEY:
                raise ConfigurationError("AI_GATEWAY_API_KEY is not configured")
            self._openai_client = AsyncOpenAI(
                api_key=settings.AI_GATEWAY_API_KEY,
                base_url=settings.AI_GATEWAY_BASE_URL,
                timeout=float(settings.UPSTREAM_TIMEOUT_SECONDS),
                max_retries=0,
            )
        return self._openai_client

    async def _create(self, **kwargs: Any) -> Any:
        model = kwargs.get("model")
        try:
            return await self._client().chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            logger.error("AI gateway error", extra={"status": exc.status_code, "model": model})
            raise UpstreamApiError(message="AI gateway error", status_code=exc.status_code) from exc
        except openai.APIError as exc:
            logger.error("AI gateway request failed", extra={"model": model, "error": str(exc)})
            raise UpstreamApiError(message="AI gateway error", status_code=500) from exc

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Optional[str]:
        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if temperature is not None:
            kwargs["temperature"] = temperature
        completion = await self._create(**kwargs)
        if completion and completion.choices:
            return getattr(completion.choices[0].message, "content", None)
        return None

    async def request_tool_calls(
        self, messages: list[dict[str, Any]], *, model: str, tools: list[dict[str, Any]]
    ) -> Optional[Any]:
        """Non-streamed pass that returns the assistant message when it asks for tools, else None."""
        completion = await self._create(model=model, messages=messages, tools=tools, tool_choice="auto")
        if not completion or not completion.choices:
            return None
        message = completion.choices[0].message
        return message if getattr(message, "tool_calls", None) else None

    async def open_stream(self, messages: list[dict[str, Any]], *, model: str) -> AsyncIterator[str]:
        """Start a streamed completion and return an iterator of SSE frames.

        The request is issued before this returns, so gateway rejections raise here
        rather than after the response has started.
        """
        stream = await self._create(model=model, messages=messages, stream=True)
        return _sse_frames(stream)


async def _sse_frames(stream: Any) -> AsyncIterator[str]:
    try:
        async for chunk in stream:
            yield f"data: {chunk.model_dump_json(exclude_none=True)}\n\n"
    except openai.APIError:
        logger.exception("AI gateway stream interrupted")
    yield "data: [DONE]\n\n"


gateway = ChatGateway()


@dataclass
class VisitorChat:
    """Visitor chat session operations on top of the transcript tables."""

    session: Session
    chat_gateway: ChatGateway = field(default_factory=lambda: gateway)

    @property
    def repo(self) -> AiChatRepository:
        return AiChatRepository(self.session)

    def health(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "service": "ai-assistant",
            "api_configured": self.chat_gateway.configured,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def start_session(
        self,
        session_id: str,
        *,
        visitor_name: Optional[str] = None,
        visitor_email: Optional[str] = None,
        current_page: Optional[str] = None,
    ) -> dict[str, Any]:
        chat = self.repo.get_session(session_id)
        if chat is None:
            chat = self.repo.create_session(
                session_id=session_id,
                visitor_name=visitor_name,
                visitor_email=visitor_email,
                current_page=current_page,
            )
        return {
            "success": True,
            "session": {
                "id": str(chat.id),
                "session_id": chat.session_id,
                "status": chat.status.value,
            },
            "greeting": GREETING,
        }

    def request_human(self, session_id: str, reason: Optional[str] = None) -> dict[str, Any]:
        chat = self.repo.get_session(session_id)
        if chat is not None:
            self.repo.create_handoff(chat_session_id=chat.id, reason=reason or "User requested human assistance")
            self.repo.set_status(chat_session_id=chat.id, status=ChatSessionStatusEnum.transferred)
            logger.info("Visitor chat handed off", extra={"session_id": session_id})
        return {"success": True, "message": HANDOFF_MESSAGE, "transferred": True}

    def show_booking(self, session_id: str) -> dict[str, Any]:
        chat = self.repo.get_session(session_id)
        if chat is not None:
            self.repo.set_status(
                chat_session_id=chat.id,
                status=ChatSessionStatusEnum.booking,
                calendly_link=settings.CALENDLY_URL,
            )
        return {
            "success": True,
            "showCalendly": True,
            "calendlyUrl": settings.CALENDLY_URL,
            "message": BOOKING_MESSAGE,
        }

    async def reply(
        self,
        session_id: Optional[str],
        message: str,
        *,
        visitor_name: Optional[str] = None,
        current_page: Optional[str] = None,
    ) -> dict[str, Any]:
        chat = self.repo.get_session(session_id) if session_id else None
        history: list[dict[str, str]] = []
        if chat is not None:
            history = [
                {"role": row.role.value, "content": row.content}
                for row in self.repo.recent_messages(chat.id, limit=CHAT_HISTORY_LIMIT)
            ]
            self.repo.add_message(chat_session_id=chat.id, role=ChatRoleEnum.user, content=message)

        messages = [
            {"role": "system", "content": visitor_system_prompt(current_page, visitor_name)},
            *history,
            {"role": "user", "content": message},
        ]
        text = await self.chat_gateway.complete(
            messages,
            model=settings.AI_DEFAULT_MODEL,
            max_tokens=settings.AI_CHAT_MAX_TOKENS,
            temperature=settings.AI_CHAT_TEMPERATURE,
        )
        reply = extract_actions(text)

        if chat is not None:
            self.repo.add_message(chat_session_id=chat.id, role=ChatRoleEnum.assistant, content=reply.message)
            self.repo.touch(chat.id)

        payload: dict[str, Any] = {
            "success": True,
            "message": reply.message,
            "showCalendly": reply.showCalendly,
            "requestHuman": reply.requestHuman,
        }
        if reply.showCalendly:
            payload["calendlyUrl"] = settings.CALENDLY_URL
        return payload

import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from sqlalchemy import select

from webstack.db.enums import ChatRoleEnum, ChatSessionStatusEnum
from webstack.db.models import (
    AiChatMessage,
    AiChatSession,
    AiHandoffRequest,
    DomainSubscription,
    KeywordRankingHistory,
)
from webstack.db.repositories.ai_usage import AiUsageRepository
from webstack.errors import ConfigurationError, UpstreamApiError
from webstack.services import ai_assistant
from webstack.services.ai_assistant import ChatGateway, extract_actions, sanitize_messages, select_model
from webstack.services.ai_usage import record_usage, week_start
from webstack.services.assistant_tools import ASSISTANT_TOOLS
from webstack.services.rate_limit import limiter

CHAT_URL = "/functions/ai-assistant"
DASHBOARD_URL = "/functions/webstack-ai-assistant"


def _status_error(status_code: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://gateway.test/v1/chat/completions")
    response = httpx.Response(status_code, request=request, json={"error": "nope"})
    return openai.APIStatusError("gateway refused", response=response, body={"error": "nope"})


class _Chunk:
    def __init__(self, text: str) -> None:
        self.text = text

    def model_dump_json(self, exclude_none: bool = False) -> str:
        return '{"choices":[{"delta":{"content":"%s"}}]}' % self.text


class _Stream:
    def __init__(self, texts: list[str]) -> None:
        self._texts = list(texts)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._texts:
            raise StopAsyncIteration
        return _Chunk(self._texts.pop(0))


class DummyCompletions:
    def __init__(self, reply: str | None = "Happy to help!", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.stream_error: Exception | None = None
        self.tool_error: Exception | None = None
        self.tool_calls: list | None = None
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            if self.stream_error is not None:
                raise self.stream_error
            return _Stream(["Hel", "lo"])
        if "tools" in kwargs and self.tool_error is not None:
            raise self.tool_error
        tool_calls = self.tool_calls if "tools" in kwargs else None
        message = SimpleNamespace(content=None if tool_calls else self.reply, tool_calls=tool_calls)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class DummyOpenAI:
    def __init__(self, completions: DummyCompletions) -> None:
        self.chat = SimpleNamespace(completions=completions)


@pytest.fixture()
def completions(monkeypatch):
    dummy = DummyCompletions()
    monkeypatch.setattr(ai_assistant, "gateway", ChatGateway(client=DummyOpenAI(dummy)))
    return dummy


def test_sanitize_messages():
    messages = [{"role": "user", "content": "hi\x00 there\x1f"}, "junk", {"role": "assistant"}]
    assert sanitize_messages(messages) == [
        {"role": "user", "content": "hi there"},
        {"role": "assistant", "content": ""},
    ]
    assert sanitize_messages("not a list") == []
    long_history = [{"role": "user", "content": str(i)} for i in range(60)]
    assert sanitize_messages(long_history)[0]["content"] == "10"


def test_select_model_falls_back_to_default():
    assert select_model("openai/gpt-5-mini") == "openai/gpt-5-mini"
    assert select_model("gpt-4-turbo") == ai_assistant.settings.AI_DEFAULT_MODEL
    assert select_model(None) == ai_assistant.settings.AI_DEFAULT_MODEL


def test_extract_actions():
    reply = extract_actions("Sure! [ACTION:BOOKING]")
    assert reply.showCalendly is True
    assert reply.message == "Sure!"

    reply = extract_actions("[ACTION:HUMAN]")
    assert reply.requestHuman is True
    assert reply.message == "I'll connect you with a team member right away!"

    assert extract_actions(None).message == ai_assistant.EMPTY_REPLY


def test_gateway_requires_key(monkeypatch):
    monkeypatch.setattr(ai_assistant.settings, "AI_GATEWAY_API_KEY", None)
    gateway = ChatGateway()
    assert gateway.configured is False
    with pytest.raises(ConfigurationError):
        asyncio.run(gateway.complete([{"role": "user", "content": "hi"}], model="m"))


def test_gateway_maps_status_errors():
    gateway = ChatGateway(client=DummyOpenAI(DummyCompletions(error=_status_error(402))))
    with pytest.raises(UpstreamApiError) as excinfo:
        asyncio.run(gateway.complete([], model="m"))
    assert excinfo.value.status_code == 402


def test_health_check(api_client, monkeypatch):
    monkeypatch.setattr(ai_assistant.settings, "AI_GATEWAY_API_KEY", None)
    monkeypatch.setattr(ai_assistant, "gateway", ChatGateway())
    resp = api_client.post(CHAT_URL, json={"health_check": True})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["service"] == "ai-assistant"
    assert body["api_configured"] is False


def test_start_session_is_reused(api_client, db_session):
    payload = {"action": "start_session", "sessionId": "chat-1", "visitorInfo": {"name": "Ada", "currentPage": "/"}}
    first = api_client.post(CHAT_URL, json=payload).json()
    second = api_client.post(CHAT_URL, json=payload).json()

    assert first["success"] is True
    assert first["greeting"] == ai_assistant.GREETING
    assert first["session"]["status"] == "active"
    assert first["session"]["id"] == second["session"]["id"]
    assert len(db_session.scalars(select(AiChatSession)).all()) == 1


def test_start_session_requires_id(api_client):
    resp = api_client.post(CHAT_URL, json={"action": "start_session"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing sessionId"


def test_request_human_creates_handoff(api_client, db_session):
    api_client.post(CHAT_URL, json={"action": "start_session", "sessionId": "chat-1"})
    resp = api_client.post(CHAT_URL, json={"action": "request_human", "sessionId": "chat-1"})
    assert resp.json() == {"success": True, "message": ai_assistant.HANDOFF_MESSAGE, "transferred": True}

    handoff = db_session.scalars(select(AiHandoffRequest)).one()
    assert handoff.reason == "User requested human assistance"
    chat = db_session.scalars(select(AiChatSession)).one()
    assert chat.status == ChatSessionStatusEnum.transferred


def test_show_booking_marks_session(api_client, db_session):
    api_client.post(CHAT_URL, json={"action": "start_session", "sessionId": "chat-1"})
    resp = api_client.post(CHAT_URL, json={"action": "show_booking", "sessionId": "chat-1"})
    body = resp.json()
    assert body["showCalendly"] is True
    assert body["calendlyUrl"] == ai_assistant.settings.CALENDLY_URL

    chat = db_session.scalars(select(AiChatSession)).one()
    assert chat.status == ChatSessionStatusEnum.booking
    assert chat.calendly_link == ai_assistant.settings.CALENDLY_URL


def test_message_stores_transcript(api_client, db_session, completions):
    api_client.post(CHAT_URL, json={"action": "start_session", "sessionId": "chat-1"})
    completions.reply = "Our Starter plan is $99/month. [ACTION:BOOKING]"

    resp = api_client.post(
        CHAT_URL,
        json={"sessionId": "chat-1", "message": "How much?", "visitorInfo": {"name": "Ada", "currentPage": "/pricing"}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Our Starter plan is $99/month."
    assert body["showCalendly"] is True
    assert body["requestHuman"] is False
    assert body["calendlyUrl"] == ai_assistant.settings.CALENDLY_URL

    [call] = completions.calls
    assert call["max_tokens"] == 500
    assert call["temperature"] == 0.7
    assert call["messages"][0]["role"] == "system"
    assert "Current page: /pricing" in call["messages"][0]["content"]
    assert call["messages"][-1] == {"role": "user", "content": "How much?"}

    rows = db_session.scalars(select(AiChatMessage).order_by(AiChatMessage.created_at)).all()
    assert [(row.role, row.content) for row in rows] == [
        (ChatRoleEnum.user, "How much?"),
        (ChatRoleEnum.assistant, "Our Starter plan is $99/month."),
    ]


def test_message_includes_prior_history(api_client, completions):
    api_client.post(CHAT_URL, json={"action": "start_session", "sessionId": "chat-1"})
    api_client.post(CHAT_URL, json={"sessionId": "chat-1", "message": "first"})
    api_client.post(CHAT_URL, json={"sessionId": "chat-1", "message": "second"})

    history = completions.calls[-1]["messages"]
    assert [message["content"] for message in history[1:]] == ["first", "Happy to help!", "second"]


def test_message_without_session_is_not_stored(api_client, db_session, completions):
    resp = api_client.post(CHAT_URL, json={"message": "hello"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Happy to help!"
    assert db_session.scalars(select(AiChatMessage)).first() is None


def test_message_required(api_client):
    resp = api_client.post(CHAT_URL, json={"sessionId": "chat-1"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Message is required"


def test_message_gateway_rate_limited(api_client, completions):
    completions.error = _status_error(429)
    resp = api_client.post(CHAT_URL, json={"message": "hello"})
    assert resp.status_code == 429
    assert resp.json()["error"] == "We're experiencing high demand. Please try again in a moment."


def test_message_without_gateway_key_returns_fallback(api_client, monkeypatch):
    monkeypatch.setattr(ai_assistant.settings, "AI_GATEWAY_API_KEY", None)
    monkeypatch.setattr(ai_assistant, "gateway", ChatGateway())
    resp = api_client.post(CHAT_URL, json={"message": "hello"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "AI_GATEWAY_API_KEY is not configured"
    assert body["fallbackMessage"] == ai_assistant.FALLBACK_MESSAGE


def test_visitor_chat_is_rate_limited(api_client):
    headers = {"x-forwarded-for": "198.51.100.7"}
    for _ in range(20):
        assert api_client.post(CHAT_URL, json={"action": "show_booking"}, headers=headers).status_code == 200

    resp = api_client.post(CHAT_URL, json={"action": "show_booking"}, headers=headers)
    assert resp.status_code == 429
    body = resp.json()
    assert body["error"] == "Too many requests"
    assert body["message"].startswith("Rate limit exceeded. Please try again in ")
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in resp.headers

    other = api_client.post(CHAT_URL, json={"action": "show_booking"}, headers={"x-forwarded-for": "198.51.100.8"})
    assert other.status_code == 200


def test_dashboard_requires_auth(api_client):
    resp = api_client.post(DASHBOARD_URL, json={"messages": []})
    assert resp.status_code == 401


def test_dashboard_check_usage(api_client, auth_headers, db_session):
    record_usage(db_session, "user-1", 12)
    resp = api_client.post(DASHBOARD_URL, json={"checkUsage": True}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {
        "minutesUsed": 12.0,
        "minutesLimit": 30,
        "tier": "free",
        "canUse": True,
        "isUnlimited": False,
        "isAdmin": False,
    }


def test_dashboard_streams_and_meters(api_client, auth_headers, db_session, completions):
    resp = api_client.post(
        DASHBOARD_URL,
        json={
            "messages": [{"role": "user", "content": "How is my site doing?"}],
            "domain": "example.com",
            "model": "not-allowed",
        },
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    frames = [frame for frame in resp.text.split("\n\n") if frame]
    assert frames[-1] == "data: [DONE]"
    assert frames[0] == 'data: {"choices":[{"delta":{"content":"Hel"}}]}'

    tool_pass, call = completions.calls
    assert tool_pass["tools"] == ASSISTANT_TOOLS
    assert tool_pass["tool_choice"] == "auto"
    assert "stream" not in tool_pass
    assert call["stream"] is True
    assert call["model"] == ai_assistant.settings.AI_DEFAULT_MODEL
    assert "Selected domain: example.com" in call["messages"][0]["content"]
    assert call["messages"][1] == {"role": "user", "content": "How is my site doing?"}

    assert AiUsageRepository(db_session).minutes_used(user_id="user-1", week_start=week_start()) == 1


def test_dashboard_usage_limit(api_client, auth_headers, db_session, completions):
    record_usage(db_session, "user-1", 30)
    resp = api_client.post(DASHBOARD_URL, json={"messages": [{"role": "user", "content": "hi"}]}, headers=auth_headers)
    assert resp.status_code == 402
    body = resp.json()
    assert body["error"] == "Usage limit reached"
    assert body["upgradeRequired"] is True
    assert body["minutesLimit"] == 30
    assert completions.calls == []


def test_dashboard_rate_limit(api_client, auth_headers, completions):
    for _ in range(30):
        limiter.check("user-1", max_requests=30, window_seconds=60, prefix="webstack-ai-assistant")

    resp = api_client.post(DASHBOARD_URL, json={"messages": []}, headers=auth_headers)
    assert resp.status_code == 429
    body = resp.json()
    assert body["error"] == "Too many requests. Please slow down."
    assert body["retryAfterMs"] > 0


@pytest.mark.parametrize(
    ("status_code", "message"),
    [
        (429, "Rate limit exceeded. Please try again later."),
        (402, "AI credits exhausted. Please contact support."),
        (503, "AI service unavailable"),
    ],
)
def test_dashboard_gateway_errors(api_client, auth_headers, completions, status_code, message):
    completions.error = _status_error(status_code)
    resp = api_client.post(DASHBOARD_URL, json={"messages": [{"role": "user", "content": "hi"}]}, headers=auth_headers)
    expected = status_code if status_code in (429, 402) else 500
    assert resp.status_code == expected
    assert resp.json()["error"] == message


def _tool_call(call_id: str, name: str, arguments: dict) -> SimpleNamespace:
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=json.dumps(arguments)))


def test_dashboard_prompt_carries_domain_context(api_client, auth_headers, db_session, completions):
    db_session.add_all(
        [
            DomainSubscription(user_id="user-1", domain="example.com", tier="business_ceo", status="active"),
            DomainSubscription(user_id="user-1", domain="shop.example.com", tier="business_ceo", status="active"),
            KeywordRankingHistory(domain="example.com", keyword="seo audit", google_position=3, search_volume=1200),
        ]
    )
    db_session.commit()

    api_client.post(
        DASHBOARD_URL,
        json={"messages": [{"role": "user", "content": "hi"}], "domain": "example.com"},
        headers=auth_headers,
    )
    prompt = completions.calls[-1]["messages"][0]["content"]
    assert "Tracked keywords:" in prompt
    assert "- seo audit: position 3, volume 1200" in prompt

    completions.calls.clear()
    api_client.post(DASHBOARD_URL, json={"messages": [{"role": "user", "content": "hi"}]}, headers=auth_headers)
    prompt = completions.calls[-1]["messages"][0]["content"]
    assert "Available domains:" in prompt
    assert "example.com" in prompt and "shop.example.com" in prompt


def test_dashboard_answers_tool_calls_before_streaming(api_client, auth_headers, db_session, completions):
    db_session.add(KeywordRankingHistory(domain="example.com", keyword="seo audit", google_position=4))
    db_session.commit()
    completions.tool_calls = [_tool_call("call-1", "get_domain_keywords", {"domain": "https://www.example.com/"})]

    resp = api_client.post(
        DASHBOARD_URL,
        json={"messages": [{"role": "user", "content": "What do I rank for?"}], "domain": "example.com"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.text.endswith("data: [DONE]\n\n")

    _tool_pass, final = completions.calls
    assistant_turn, tool_turn = final["messages"][-2:]
    assert assistant_turn["role"] == "assistant"
    assert assistant_turn["tool_calls"][0]["function"]["name"] == "get_domain_keywords"
    assert tool_turn["role"] == "tool"
    assert tool_turn["tool_call_id"] == "call-1"
    result = json.loads(tool_turn["content"])
    assert result["domain"] == "example.com"
    assert [entry["keyword"] for entry in result["keywords"]] == ["seo audit"]
    assert "Some tools may have returned errors" in final["messages"][0]["content"]

    assert AiUsageRepository(db_session).minutes_used(user_id="user-1", week_start=week_start()) == 2


def test_dashboard_free_tier_cannot_use_paid_tools(api_client, auth_headers, completions):
    completions.tool_calls = [
        _tool_call("call-1", "get_keyword_history", {"domain": "example.com", "keyword": "seo audit"})
    ]
    api_client.post(DASHBOARD_URL, json={"messages": [{"role": "user", "content": "trend?"}]}, headers=auth_headers)

    tool_turn = completions.calls[-1]["messages"][-1]
    assert json.loads(tool_turn["content"])["error"] == "Upgrade required"


def test_dashboard_tool_pass_failure_falls_back_to_stream(api_client, auth_headers, db_session, completions):
    completions.tool_error = _status_error(500)
    resp = api_client.post(DASHBOARD_URL, json={"messages": [{"role": "user", "content": "hi"}]}, headers=auth_headers)
    assert resp.status_code == 200
    assert len(completions.calls) == 2
    assert AiUsageRepository(db_session).minutes_used(user_id="user-1", week_start=week_start()) == 1


def test_dashboard_stream_failure_after_tools(api_client, auth_headers, db_session, completions):
    completions.tool_calls = [_tool_call("call-1", "get_subscription_status", {})]
    completions.stream_error = _status_error(429)

    payload = {"messages": [{"role": "user", "content": "plan?"}]}
    resp = api_client.post(DASHBOARD_URL, json=payload, headers=auth_headers)
    assert resp.status_code == 500
    assert resp.json()["error"] == "AI service temporarily unavailable. Please try again."
    assert AiUsageRepository(db_session).minutes_used(user_id="user-1", week_start=week_start()) == 0

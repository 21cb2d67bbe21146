"""Account context and function tools for the dashboard assistant.

The assistant first asks the gateway whether any of ``ASSISTANT_TOOLS`` should be
called; the calls are answered here from the platform's own tables and fed back
to the model before the streamed answer.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webstack.db.enums import UsageTierEnum
from webstack.db.repositories.keyword_history import KeywordHistoryRepository
from webstack.db.repositories.subscriptions import DomainSubscriptionsRepository
from webstack.db.repositories.visitor_tracking import PageViewsRepository, VisitorSessionsRepository
from webstack.services.keyword_history import keyword_history, serialize_entry
from webstack.services.live_visitors import list_live_visitors
from webstack.services.subscriptions import get_subscription_status

logger = logging.getLogger(__name__)

CONTEXT_KEYWORD_LIMIT = 50
PROMPT_KEYWORD_LIMIT = 10
TIME_RANGES = {"today", "week", "month"}

PAID_TOOL_NAMES = ("get_keyword_history",)

ASSISTANT_TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "get_domain_keywords",
            "description": "Get the latest tracked keywords and search engine positions for a domain.",
            "parameters": {
                "type": "object",
                "properties": {
                    "domain": {"type": "string", "description": "The domain to look up (e.g., example.com)"},
                },
                "required": ["domain"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_keyword_history",
            "description": "Get the weekly ranking history of one keyword for a domain, oldest first.",
            "parameters": {
                "type": "object",
                "properties": {
                    "domain": {"type": "string", "description": "The domain the keyword is tracked for"},
                    "keyword": {"type": "string", "description": "The tracked keyword"},
                },
                "required": ["domain", "keyword"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_visitor_intelligence",
            "description": "Summarize who is visiting a domain: visitor count and most viewed pages.",
            "parameters": {
                "type": "object",
                "properties": {
                    "domain": {"type": "string", "description": "The domain to summarize"},
                    "time_range": {
                        "type": "string",
                        "enum": sorted(TIME_RANGES),
                        "description": "Period to cover (default week)",
                    },
                },
                "required": ["domain"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_live_visitors",
            "description": "List visitors active on a domain in the last five minutes.",
            "parameters": {
                "type": "object",
                "properties": {
                    "domain": {"type": "string", "description": "The domain to watch"},
                },
                "required": ["domain"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_subscription_status",
            "description": "Get the user's plan, enabled features and limits.",
            "parameters": {"type": "object", "properties": {}},
        },
    },
]


def clean_domain(domain: str) -> str:
    domain = re.sub(r"^https?://", "", domain.strip().lower())
    return re.sub(r"^www\.", "", domain).rstrip("/")


@dataclass
class DomainContext:
    domains: list[dict[str, Any]] = field(default_factory=list)
    keywords: list[dict[str, Any]] = field(default_factory=list)


def build_domain_context(session: Session, user_id: str, selected_domain: Optional[str] = None) -> DomainContext:
    context = DomainContext(
        domains=[
            {"domain": row.domain, "tier": row.tier, "status": row.status}
            for row in DomainSubscriptionsRepository(session).list_for_user(user_id)
            if row.domain
        ]
    )
    if selected_domain:
        rows = KeywordHistoryRepository(session).latest_for_domain(
            domain=clean_domain(selected_domain), limit=CONTEXT_KEYWORD_LIMIT
        )
        context.keywords = [
            {
                "keyword": row.keyword,
                "google_position": row.google_position,
                "search_volume": row.search_volume,
                "cpc": float(row.cpc) if row.cpc is not None else None,
            }
            for row in rows
        ]
    return context


def describe_context(context: DomainContext, selected_domain: Optional[str]) -> str:
    lines: list[str] = []
    if not selected_domain and context.domains:
        names = ", ".join(entry["domain"] for entry in context.domains)
        lines.append(f"Available domains: {names}")
    if context.keywords:
        lines.append("Tracked keywords:")
        for entry in context.keywords[:PROMPT_KEYWORD_LIMIT]:
            position = entry["google_position"] or "-"
            volume = entry["search_volume"] or "?"
            lines.append(f"- {entry['keyword']}: position {position}, volume {volume}")
    return "\n".join(lines)


def _range_start(time_range: str, now: datetime) -> datetime:
    if time_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == "month":
        return now - timedelta(days=30)
    return now - timedelta(days=7)


def domain_keywords(session: Session, *, domain: str) -> dict[str, Any]:
    domain = clean_domain(domain)
    rows = KeywordHistoryRepository(session).latest_for_domain(domain=domain, limit=CONTEXT_KEYWORD_LIMIT)
    if not rows:
        message = f"No keyword snapshots saved for {domain} yet."
        return {"domain": domain, "keywords": [], "total": 0, "message": message}
    latest = rows[0].snapshot_at
    keywords = [serialize_entry(row) for row in rows if row.snapshot_at == latest]
    return {"domain": domain, "keywords": keywords, "total": len(keywords)}


def visitor_intelligence(
    session: Session,
    *,
    domain: str,
    time_range: str = "week",
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    domain = clean_domain(domain)
    if time_range not in TIME_RANGES:
        time_range = "week"
    since = _range_start(time_range, now or datetime.now(timezone.utc))
    total = VisitorSessionsRepository(session).count_started_since(domain=domain, since=since)
    top_pages = PageViewsRepository(session).top_pages_since(domain=domain, since=since)
    return {
        "domain": domain,
        "time_range": time_range,
        "total_visitors": total,
        "top_pages": [{"path": path, "views": views} for path, views in top_pages],
        "top_page_views": sum(views for _path, views in top_pages),
        "summary": f"{total} visitors in the last {time_range}",
    }


def live_visitors(session: Session, *, user_id: str, domain: str) -> dict[str, Any]:
    domain = clean_domain(domain)
    visitors = list_live_visitors(session, current_user_id=user_id, domain=domain)
    return {
        "domain": domain,
        "count": len(visitors),
        "visitors": [
            {
                "first_page": visitor.first_page,
                "referrer": visitor.referrer,
                "name": visitor.display_name,
                "last_activity_at": visitor.last_activity_at.isoformat(),
                "is_current_user": visitor.is_current_user,
            }
            for visitor in visitors
        ],
    }


def _upgrade_required(name: str) -> dict[str, Any]:
    feature = name.replace("_", " ")
    return {
        "error": "Upgrade required",
        "message": f"The {feature} feature requires a paid subscription. Upgrade to unlock ranking history and trends.",
        "upgrade_url": "/pricing",
    }


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw or "{}")
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _tool_handlers(session: Session, user_id: str) -> dict[str, Callable[[dict[str, Any]], Any]]:
    return {
        "get_domain_keywords": lambda args: domain_keywords(session, domain=args["domain"]),
        "get_keyword_history": lambda args: {
            "domain": clean_domain(args["domain"]),
            "keyword": args["keyword"],
            "history": keyword_history(session, domain=clean_domain(args["domain"]), keyword=args["keyword"]),
        },
        "get_visitor_intelligence": lambda args: visitor_intelligence(
            session, domain=args["domain"], time_range=args.get("time_range") or "week"
        ),
        "get_live_visitors": lambda args: live_visitors(session, user_id=user_id, domain=args["domain"]),
        "get_subscription_status": lambda _args: get_subscription_status(session, user_id).to_dict(),
    }


def execute_tool_calls(session: Session, tool_calls: list[Any], *, user_id: str, tier: str) -> list[dict[str, Any]]:
    """Answer each tool call in order; failures become ``{"error": ...}`` results for the model."""
    is_paid = tier != UsageTierEnum.free.value
    handlers = _tool_handlers(session, user_id)
    results: list[dict[str, Any]] = []
    for call in tool_calls:
        name = call.function.name
        if name in PAID_TOOL_NAMES and not is_paid:
            logger.info("Blocked paid assistant tool", extra={"tool": name, "user_id": user_id})
            results.append(_upgrade_required(name))
            continue
        handler = handlers.get(name)
        if handler is None:
            results.append({"error": f"Unknown tool: {name}"})
            continue
        args = _parse_arguments(call.function.arguments)
        try:
            results.append(handler(args))
        except KeyError as exc:
            results.append({"error": f"Missing argument: {exc.args[0]}"})
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Assistant tool failed", extra={"tool": name, "user_id": user_id})
            results.append({"error": f"Tool execution failed: {exc.__class__.__name__}"})
    return results


def tool_call_message(message: Any) -> dict[str, Any]:
    """Re-encode the model's tool-calling turn so it can be replayed to the gateway."""
    return {
        "role": "assistant",
        "content": getattr(message, "content", None) or "",
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.function.name, "arguments": call.function.arguments},
            }
            for call in message.tool_calls
        ],
    }

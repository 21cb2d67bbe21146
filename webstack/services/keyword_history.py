from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from webstack.db.models import KeywordRankingHistory
from webstack.db.repositories.base import as_utc
from webstack.db.repositories.keyword_history import KeywordHistoryRepository

logger = logging.getLogger(__name__)

SNAPSHOT_WINDOW = timedelta(days=6)
DEFAULT_HISTORY_LIMIT = 52
METRIC_FIELDS = (
    "google_position",
    "bing_position",
    "yahoo_position",
    "search_volume",
    "cpc",
    "competition_level",
)


def snapshot_row(keyword: dict[str, Any]) -> dict[str, Any]:
    # Zero positions and empty strings mean "no data" upstream.
    row = {"keyword": keyword.get("keyword")}
    for field in METRIC_FIELDS:
        row[field] = keyword.get(field) or None
    return row


def serialize_entry(entry: KeywordRankingHistory, *, include_keyword: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "snapshot_at": as_utc(entry.snapshot_at).isoformat(),
        "google_position": entry.google_position,
        "bing_position": entry.bing_position,
        "yahoo_position": entry.yahoo_position,
        "search_volume": entry.search_volume,
        "cpc": float(entry.cpc) if entry.cpc is not None else None,
        "competition_level": entry.competition_level,
    }
    if include_keyword:
        payload = {
            "id": str(entry.id),
            "domain": entry.domain,
            "keyword": entry.keyword,
            "source": entry.source,
            **payload,
        }
    return payload


def save_snapshot(
    session: Session,
    *,
    domain: str,
    keywords: Iterable[dict[str, Any]],
    force: bool = False,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    repo = KeywordHistoryRepository(session)
    since = (now or datetime.now(timezone.utc)) - SNAPSHOT_WINDOW
    existing = repo.latest_snapshot_since(domain=domain, since=since)
    if existing is not None and not force:
        return {
            "success": False,
            "message": "Snapshot already exists for this week",
            "lastSnapshot": {"id": str(existing.id), "snapshot_at": as_utc(existing.snapshot_at).isoformat()},
        }

    count = repo.bulk_create(domain=domain, rows=[snapshot_row(keyword) for keyword in keywords])
    logger.info("Saved keyword snapshots", extra={"domain": domain, "count": count})
    return {"success": True, "count": count}


def keyword_history(
    session: Session, *, domain: str, keyword: str, limit: int = DEFAULT_HISTORY_LIMIT
) -> list[dict[str, Any]]:
    rows = KeywordHistoryRepository(session).history_for_keyword(domain=domain, keyword=keyword, limit=limit)
    return [serialize_entry(row) for row in rows]


def domain_history(session: Session, *, domain: str) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = {}
    for row in KeywordHistoryRepository(session).history_for_domain(domain=domain):
        grouped.setdefault(row.keyword.lower(), []).append(serialize_entry(row, include_keyword=False))
    return grouped

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from webstack.db.models import VisitorSession
from webstack.db.repositories.base import as_utc
from webstack.db.repositories.profiles import ProfilesRepository
from webstack.db.repositories.visitor_tracking import VisitorSessionsRepository

LIVE_WINDOW = timedelta(minutes=5)
DEFAULT_LIMIT = 8


@dataclass
class LiveVisitor:
    session_id: str
    first_page: Optional[str]
    last_activity_at: datetime
    started_at: datetime
    referrer: Optional[str]
    user_id: Optional[str]
    domain: Optional[str]
    avatar_url: Optional[str] = None
    display_name: Optional[str] = None
    is_current_user: bool = False


def _is_self(row: VisitorSession, current_user_id: Optional[str], session_id: Optional[str]) -> bool:
    return bool(current_user_id and row.user_id == current_user_id) or bool(
        session_id and row.session_id == session_id
    )


def dedupe_sessions(
    rows: Iterable[VisitorSession],
    *,
    current_user_id: Optional[str],
    session_id: Optional[str],
) -> list[VisitorSession]:
    """One entry per person, newest activity first.

    The caller collapses to a single `self` entry. A logged-in caller's own anonymous
    row for the same browser session is dropped in favour of the signed-in row.
    """
    ordered = sorted(rows, key=lambda row: as_utc(row.last_activity_at), reverse=True)
    unique: list[VisitorSession] = []
    seen: set[str] = set()
    for row in ordered:
        if current_user_id and not row.user_id and row.session_id == session_id:
            continue
        keys = {f"u:{row.user_id}"} if row.user_id else {f"s:{row.session_id}"}
        if _is_self(row, current_user_id, session_id):
            keys.add("self")
        if keys & seen:
            continue
        seen.update(keys)
        unique.append(row)
    return unique


def list_live_visitors(
    session: Session,
    *,
    current_user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    domain: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
) -> list[LiveVisitor]:
    since = (now or datetime.now(timezone.utc)) - LIVE_WINDOW
    rows = VisitorSessionsRepository(session).list_active_since(since=since, domain=domain, limit=limit)
    unique = dedupe_sessions(rows, current_user_id=current_user_id, session_id=session_id)
    profiles = ProfilesRepository(session).list_by_user_ids(row.user_id for row in unique)

    visitors = []
    for row in unique:
        profile = profiles.get(row.user_id) if row.user_id else None
        visitors.append(
            LiveVisitor(
                session_id=row.session_id,
                first_page=row.first_page,
                last_activity_at=as_utc(row.last_activity_at),
                started_at=as_utc(row.started_at),
                referrer=row.referrer,
                user_id=row.user_id,
                domain=row.domain,
                avatar_url=profile.avatar_url if profile else None,
                display_name=profile.full_name if profile else None,
                is_current_user=_is_self(row, current_user_id, session_id),
            )
        )

    current = next((index for index, visitor in enumerate(visitors) if visitor.is_current_user), -1)
    if current > 0:
        visitors.insert(0, visitors.pop(current))
    return visitors

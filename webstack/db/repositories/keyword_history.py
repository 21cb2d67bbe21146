from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func, select

from webstack.db.models import KeywordRankingHistory, utcnow
from webstack.db.repositories.base import Repository


class KeywordHistoryRepository(Repository):
    def latest_snapshot_since(self, *, domain: str, since: datetime) -> Optional[KeywordRankingHistory]:
        stmt = (
            select(KeywordRankingHistory)
            .where(KeywordRankingHistory.domain == domain, KeywordRankingHistory.snapshot_at >= since)
            .order_by(KeywordRankingHistory.snapshot_at.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def bulk_create(self, *, domain: str, rows: Iterable[dict[str, Any]], source: str = "bron") -> int:
        snapshot_at = utcnow()
        records = [
            KeywordRankingHistory(domain=domain, source=source, snapshot_at=snapshot_at, **row)
            for row in rows
        ]
        self.session.add_all(records)
        self.session.commit()
        return len(records)

    def history_for_keyword(self, *, domain: str, keyword: str, limit: int = 52) -> list[KeywordRankingHistory]:
        stmt = (
            select(KeywordRankingHistory)
            .where(
                KeywordRankingHistory.domain == domain,
                func.lower(KeywordRankingHistory.keyword) == keyword.lower(),
            )
            .order_by(KeywordRankingHistory.snapshot_at.asc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def history_for_domain(self, *, domain: str) -> list[KeywordRankingHistory]:
        stmt = (
            select(KeywordRankingHistory)
            .where(KeywordRankingHistory.domain == domain)
            .order_by(KeywordRankingHistory.snapshot_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def latest_for_domain(self, *, domain: str, limit: int = 50) -> list[KeywordRankingHistory]:
        stmt = (
            select(KeywordRankingHistory)
            .where(KeywordRankingHistory.domain == domain)
            .order_by(KeywordRankingHistory.snapshot_at.desc(), KeywordRankingHistory.keyword.asc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

from __future__ import annotations

from datetime import date

from sqlalchemy import select

from webstack.db.models import AiAssistantUsage, utcnow
from webstack.db.repositories.base import Repository


class AiUsageRepository(Repository):
    def minutes_used(self, *, user_id: str, week_start: date) -> float:
        stmt = select(AiAssistantUsage.minutes_used).where(
            AiAssistantUsage.user_id == user_id,
            AiAssistantUsage.week_start == week_start,
        )
        value = self.session.scalars(stmt).first()
        return float(value or 0)

    def add_minutes(self, *, user_id: str, week_start: date, minutes: float) -> float:
        table = AiAssistantUsage.__table__
        stmt = (
            self.upsert_insert(table)
            .values(user_id=user_id, week_start=week_start, minutes_used=minutes)
            .on_conflict_do_update(
                index_elements=["user_id", "week_start"],
                set_={"minutes_used": table.c.minutes_used + minutes, "updated_at": utcnow()},
            )
        )
        self.session.execute(stmt)
        self.session.commit()
        return self.minutes_used(user_id=user_id, week_start=week_start)

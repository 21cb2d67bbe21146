from __future__ import annotations

from typing import Optional

from sqlalchemy import select

from webstack.db.models import DomainSubscription, UserRole, WhiteLabelSettings
from webstack.db.repositories.base import Repository


class UserRolesRepository(Repository):
    def list_roles(self, user_id: str) -> set[str]:
        rows = self.session.scalars(select(UserRole.role).where(UserRole.user_id == user_id)).all()
        return {getattr(role, "value", role) for role in rows}

    def grant(self, *, user_id: str, role: str) -> None:
        stmt = (
            self.upsert_insert(UserRole.__table__)
            .values(user_id=user_id, role=role)
            .on_conflict_do_nothing(index_elements=["user_id", "role"])
        )
        self.session.execute(stmt)
        self.session.commit()


class WhiteLabelSettingsRepository(Repository):
    def get_by_user_id(self, user_id: str) -> Optional[WhiteLabelSettings]:
        stmt = select(WhiteLabelSettings).where(WhiteLabelSettings.user_id == user_id)
        return self.session.scalars(stmt).first()


class DomainSubscriptionsRepository(Repository):
    def latest_active(self, user_id: str) -> Optional[DomainSubscription]:
        stmt = (
            select(DomainSubscription)
            .where(DomainSubscription.user_id == user_id, DomainSubscription.status == "active")
            .order_by(DomainSubscription.created_at.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def list_for_user(self, user_id: str) -> list[DomainSubscription]:
        stmt = (
            select(DomainSubscription)
            .where(DomainSubscription.user_id == user_id)
            .order_by(DomainSubscription.created_at.desc())
        )
        return list(self.session.scalars(stmt).all())

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select

from webstack.db.models import Profile, utcnow
from webstack.db.repositories.base import Repository


class ProfilesRepository(Repository):
    def get_by_user_id(self, user_id: str) -> Optional[Profile]:
        return self.session.scalars(select(Profile).where(Profile.user_id == user_id)).first()

    def list_by_user_ids(self, user_ids: Iterable[str]) -> dict[str, Profile]:
        ids = list({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        rows = self.session.scalars(select(Profile).where(Profile.user_id.in_(ids))).all()
        return {row.user_id: row for row in rows}

    def upsert(
        self,
        *,
        user_id: str,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Profile:
        """Create or update a profile. Only non-empty values overwrite stored ones."""
        values = {"full_name": full_name, "email": email, "avatar_url": avatar_url}
        updates = {key: value for key, value in values.items() if value}
        stmt = (
            self.upsert_insert(Profile.__table__)
            .values(user_id=user_id, **values)
        )
        if updates:
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id"],
                set_={**updates, "updated_at": utcnow()},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
        self.session.execute(stmt)
        self.session.commit()
        profile = self.get_by_user_id(user_id)
        return profile

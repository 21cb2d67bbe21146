from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select

from webstack.db.models import OAuthToken, utcnow
from webstack.db.repositories.base import Repository


class OAuthTokensRepository(Repository):
    def get(self, *, user_id: str, provider: str) -> Optional[OAuthToken]:
        stmt = select(OAuthToken).where(OAuthToken.user_id == user_id, OAuthToken.provider == provider)
        return self.session.scalars(stmt).first()

    def upsert(
        self,
        *,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: Optional[str],
        scope: Optional[str],
        expires_at: Optional[datetime],
        token_type: str = "Bearer",
    ) -> OAuthToken:
        stmt = (
            self.upsert_insert(OAuthToken.__table__)
            .values(
                user_id=user_id,
                provider=provider,
                access_token=access_token,
                refresh_token=refresh_token,
                token_type=token_type,
                scope=scope,
                expires_at=expires_at,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "provider"],
                set_={
                    "access_token": access_token,
                    "refresh_token": refresh_token,
                    "token_type": token_type,
                    "scope": scope,
                    "expires_at": expires_at,
                    "updated_at": utcnow(),
                },
            )
        )
        self.session.execute(stmt)
        self.session.commit()
        token = self.get(user_id=user_id, provider=provider)
        return token

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from webstack.config import settings
from webstack.errors import ConfigurationError
from webstack.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_PROVIDER = "google"
GOOGLE_TOKEN_TTL_SECONDS = 3600

GOOGLE_SCOPES = (
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/analytics.readonly",
    "https://www.googleapis.com/auth/webmasters.readonly",
    "https://www.googleapis.com/auth/webmasters",
    "https://www.googleapis.com/auth/adwords",
    "https://www.googleapis.com/auth/business.manage",
)
GOOGLE_SCOPE_STRING = " ".join(GOOGLE_SCOPES)

# Browser storage keys mirrored so every Google-backed dashboard reads the same token.
TOKEN_STORAGE_KEYS = (
    "unified_google_token",
    "ga_access_token",
    "gsc_access_token",
    "google_ads_access_token",
    "gmb_access_token",
)
EXPIRY_STORAGE_KEYS = (
    "unified_google_expiry",
    "ga_token_expiry",
    "gsc_token_expiry",
    "google_ads_token_expiry",
    "gmb_token_expiry",
)
SCOPES_STORAGE_KEY = "unified_google_scopes"
PROFILE_STORAGE_KEYS = ("unified_google_profile", "gsc_google_profile")


@dataclass
class GoogleProfile:
    name: Optional[str] = None
    email: Optional[str] = None
    picture: Optional[str] = None

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any], email: Optional[str]) -> "GoogleProfile":
        return cls(
            name=metadata.get("full_name") or metadata.get("name"),
            email=email,
            picture=metadata.get("avatar_url") or metadata.get("picture"),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.picture)


def token_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=GOOGLE_TOKEN_TTL_SECONDS)


def build_storage_fanout(
    access_token: str,
    expires_at: datetime,
    profile: Optional[GoogleProfile] = None,
) -> dict[str, str]:
    """Map every per-product storage key to the single unified Google token."""
    expiry_ms = str(int(expires_at.timestamp() * 1000))
    storage: dict[str, str] = {SCOPES_STORAGE_KEY: GOOGLE_SCOPE_STRING}
    for key in TOKEN_STORAGE_KEYS:
        storage[key] = access_token
    for key in EXPIRY_STORAGE_KEYS:
        storage[key] = expiry_ms
    if profile is not None and not profile.is_empty:
        encoded = json.dumps({"name": profile.name, "email": profile.email, "picture": profile.picture})
        for key in PROFILE_STORAGE_KEYS:
            storage[key] = encoded
    return storage


class GoogleOAuthClient(UpstreamClient):
    service_name = "Google OAuth"

    async def exchange_code(self, *, code: str, code_verifier: str, redirect_uri: str) -> dict[str, Any]:
        if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
            logger.error("Missing GOOGLE_CLIENT_ID or GOOGLE_CLIENT_SECRET")
            raise ConfigurationError("Server configuration error: missing OAuth credentials")
        token_data = await self._json_object(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "code": code,
                "code_verifier": code_verifier,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        return {
            "access_token": token_data.get("access_token"),
            "expires_in": token_data.get("expires_in"),
            "token_type": token_data.get("token_type"),
            "scope": token_data.get("scope"),
        }

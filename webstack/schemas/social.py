from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class SocialOAuthTokenRequest(BaseModel):
    platform: Optional[str] = None
    code: Optional[str] = None
    redirectUri: Optional[str] = None
    codeVerifier: Optional[str] = None


class SocialOAuthTokenResponse(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    profile: Optional[dict[str, Any]] = None

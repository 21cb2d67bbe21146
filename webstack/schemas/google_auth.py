from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class GoogleOAuthTokenRequest(BaseModel):
    code: Optional[str] = None
    codeVerifier: Optional[str] = None
    redirectUri: Optional[str] = None


class GoogleOAuthTokenResponse(BaseModel):
    access_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None


class GoogleProfileIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    picture: Optional[str] = None


class GoogleSyncRequest(BaseModel):
    providerToken: Optional[str] = None
    providerRefreshToken: Optional[str] = None
    profile: Optional[GoogleProfileIn] = None


class GoogleSyncResponse(BaseModel):
    success: bool = True
    synced: bool
    expiresAt: Optional[datetime] = None
    storage: dict[str, str] = {}


class GoogleTokenResponse(BaseModel):
    accessToken: str
    expiresAt: datetime
    scope: Optional[str] = None
    hasRefreshToken: bool

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from webstack.auth.dependencies import AuthContext, get_current_user
from webstack.db.deps import get_session
from webstack.db.repositories.base import as_utc
from webstack.db.repositories.oauth_tokens import OAuthTokensRepository
from webstack.db.repositories.profiles import ProfilesRepository
from webstack.errors import FunctionError, UpstreamApiError
from webstack.schemas.google_auth import (
    GoogleOAuthTokenRequest,
    GoogleOAuthTokenResponse,
    GoogleSyncRequest,
    GoogleSyncResponse,
    GoogleTokenResponse,
)
from webstack.services.google_auth import (
    GOOGLE_PROVIDER,
    GOOGLE_SCOPE_STRING,
    GoogleOAuthClient,
    GoogleProfile,
    build_storage_fanout,
    token_expiry,
)

router = APIRouter(tags=["google"])
logger = logging.getLogger(__name__)

oauth_client = GoogleOAuthClient()


@router.post("/functions/google-oauth-token", response_model=GoogleOAuthTokenResponse)
async def exchange_google_code(payload: GoogleOAuthTokenRequest):
    if not payload.code or not payload.codeVerifier or not payload.redirectUri:
        raise FunctionError(message="Missing required parameters: code, codeVerifier, redirectUri", status_code=400)
    try:
        token = await oauth_client.exchange_code(
            code=payload.code,
            code_verifier=payload.codeVerifier,
            redirect_uri=payload.redirectUri,
        )
    except UpstreamApiError as exc:
        logger.error("Google token exchange failed", extra={"upstream_status": exc.upstream_status})
        if exc.upstream_status is None:
            raise
        raise FunctionError(message=str(exc) or "Token exchange failed", status_code=400) from exc
    logger.info("Google token exchange succeeded")
    return GoogleOAuthTokenResponse(**token)


@router.post("/auth/google/sync", response_model=GoogleSyncResponse)
def sync_google_token(
    payload: GoogleSyncRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Persist the Google provider token from a fresh sign-in and return the storage fan-out."""
    if auth.provider != GOOGLE_PROVIDER or not payload.providerToken:
        return GoogleSyncResponse(synced=False)

    expires_at = token_expiry()
    OAuthTokensRepository(session).upsert(
        user_id=auth.user_id,
        provider=GOOGLE_PROVIDER,
        access_token=payload.providerToken,
        refresh_token=payload.providerRefreshToken or None,
        scope=GOOGLE_SCOPE_STRING,
        expires_at=expires_at,
    )

    profile = GoogleProfile.from_metadata(auth.user_metadata, auth.email)
    if payload.profile is not None:
        profile = GoogleProfile(
            name=payload.profile.name or profile.name,
            email=payload.profile.email or profile.email,
            picture=payload.profile.picture or profile.picture,
        )
    if not profile.is_empty:
        ProfilesRepository(session).upsert(
            user_id=auth.user_id,
            full_name=profile.name,
            email=profile.email,
            avatar_url=profile.picture,
        )
    logger.info("Google token synced", extra={"user_id": auth.user_id})

    return GoogleSyncResponse(
        synced=True,
        expiresAt=expires_at,
        storage=build_storage_fanout(payload.providerToken, expires_at, profile),
    )


@router.get("/auth/google/token", response_model=GoogleTokenResponse)
def get_google_token(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    token = OAuthTokensRepository(session).get(user_id=auth.user_id, provider=GOOGLE_PROVIDER)
    expires_at = as_utc(token.expires_at) if token else None
    if token is None or expires_at is None or expires_at <= datetime.now(timezone.utc):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No valid Google token")
    return GoogleTokenResponse(
        accessToken=token.access_token,
        expiresAt=expires_at,
        scope=token.scope,
        hasRefreshToken=bool(token.refresh_token),
    )

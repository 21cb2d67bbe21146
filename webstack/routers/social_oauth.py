from __future__ import annotations

from fastapi import APIRouter

from webstack.errors import FunctionError
from webstack.schemas.social import SocialOAuthTokenRequest, SocialOAuthTokenResponse
from webstack.services.social_oauth import SocialOAuthClient

router = APIRouter(prefix="/functions", tags=["social"])

social_client = SocialOAuthClient()


@router.post("/social-oauth-token", response_model=SocialOAuthTokenResponse)
async def exchange_social_code(payload: SocialOAuthTokenRequest):
    if not payload.code or not payload.redirectUri:
        raise FunctionError(message="Missing required parameters: code, redirectUri", status_code=400)
    token = await social_client.exchange(
        platform=payload.platform or "",
        code=payload.code,
        redirect_uri=payload.redirectUri,
        code_verifier=payload.codeVerifier,
    )
    return SocialOAuthTokenResponse(**token)

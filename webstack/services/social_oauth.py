from __future__ import annotations

import logging
from typing import Any, Optional

from webstack.config import settings
from webstack.errors import ConfigurationError, FunctionError, UpstreamApiError
from webstack.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

FACEBOOK_GRAPH_URL = "https://graph.facebook.com"
FACEBOOK_API_VERSION = "v18.0"
FACEBOOK_LONG_LIVED_DEFAULT_EXPIRES_IN = 5184000
TWITTER_TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
TWITTER_ME_URL = "https://api.twitter.com/2/users/me"
LINKEDIN_TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
LINKEDIN_USERINFO_URL = "https://api.linkedin.com/v2/userinfo"


def _error_message(body: dict[str, Any], fallback: str) -> Optional[str]:
    error = body.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        return error.get("message") or fallback
    return body.get("error_description") or str(error) or fallback


class SocialOAuthClient(UpstreamClient):
    service_name = "Social OAuth"

    async def _read_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        # Provider errors are reported in the body, so the status code is not checked here.
        response = await self._send(method, url, **kwargs)
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamApiError(message=f"{url} returned invalid JSON", status_code=500) from exc
        return body if isinstance(body, dict) else {}

    async def exchange(
        self,
        *,
        platform: str,
        code: str,
        redirect_uri: str,
        code_verifier: Optional[str] = None,
    ) -> dict[str, Any]:
        if platform == "facebook":
            token_data = await self._facebook(code=code, redirect_uri=redirect_uri)
        elif platform == "twitter":
            token_data = await self._twitter(code=code, redirect_uri=redirect_uri, code_verifier=code_verifier)
        elif platform == "linkedin":
            token_data = await self._linkedin(code=code, redirect_uri=redirect_uri)
        else:
            raise FunctionError(message="Unsupported platform", status_code=400)

        logger.info("Social token exchange succeeded", extra={"platform": platform})
        return {
            "access_token": token_data.get("access_token"),
            "refresh_token": token_data.get("refresh_token") or None,
            "expires_in": token_data.get("expires_in"),
            "token_type": token_data.get("token_type"),
            "scope": token_data.get("scope"),
            "profile": token_data.get("profile"),
        }

    async def _facebook(self, *, code: str, redirect_uri: str) -> dict[str, Any]:
        app_id, app_secret = settings.FACEBOOK_APP_ID, settings.FACEBOOK_APP_SECRET
        if not app_id or not app_secret:
            raise ConfigurationError("Facebook app credentials not configured")
        token_url = f"{FACEBOOK_GRAPH_URL}/{FACEBOOK_API_VERSION}/oauth/access_token"
        token_data = await self._read_json(
            "GET",
            token_url,
            params={
                "client_id": app_id,
                "client_secret": app_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        message = _error_message(token_data, "Facebook token exchange failed")
        if message:
            raise UpstreamApiError(message=message, status_code=500)

        long_lived = await self._read_json(
            "GET",
            token_url,
            params={
                "grant_type": "fb_exchange_token",
                "client_id": app_id,
                "client_secret": app_secret,
                "fb_exchange_token": token_data.get("access_token"),
            },
        )
        if long_lived.get("access_token"):
            token_data["access_token"] = long_lived["access_token"]
            token_data["expires_in"] = long_lived.get("expires_in") or FACEBOOK_LONG_LIVED_DEFAULT_EXPIRES_IN

        token_data["profile"] = await self._read_json(
            "GET",
            f"{FACEBOOK_GRAPH_URL}/me",
            params={"fields": "id,name,email,picture", "access_token": token_data.get("access_token")},
        )
        return token_data

    async def _twitter(self, *, code: str, redirect_uri: str, code_verifier: Optional[str]) -> dict[str, Any]:
        client_id, client_secret = settings.TWITTER_CLIENT_ID, settings.TWITTER_CLIENT_SECRET
        if not client_id or not client_secret:
            raise ConfigurationError("Twitter app credentials not configured")
        token_data = await self._read_json(
            "POST",
            TWITTER_TOKEN_URL,
            auth=(client_id, client_secret),
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier or "",
            },
        )
        message = _error_message(token_data, "Twitter token exchange failed")
        if message:
            raise UpstreamApiError(message=message, status_code=500)

        profile = await self._read_json(
            "GET",
            TWITTER_ME_URL,
            params={"user.fields": "profile_image_url,description"},
            headers={"Authorization": f"Bearer {token_data.get('access_token')}"},
        )
        token_data["profile"] = profile.get("data")
        return token_data

    async def _linkedin(self, *, code: str, redirect_uri: str) -> dict[str, Any]:
        client_id, client_secret = settings.LINKEDIN_CLIENT_ID, settings.LINKEDIN_CLIENT_SECRET
        if not client_id or not client_secret:
            raise ConfigurationError("LinkedIn app credentials not configured")
        token_data = await self._read_json(
            "POST",
            LINKEDIN_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        message = _error_message(token_data, "LinkedIn token exchange failed")
        if message:
            raise UpstreamApiError(message=message, status_code=500)

        token_data["profile"] = await self._read_json(
            "GET",
            LINKEDIN_USERINFO_URL,
            headers={"Authorization": f"Bearer {token_data.get('access_token')}"},
        )
        return token_data

import asyncio

import httpx
import pytest

from webstack.errors import ConfigurationError, FunctionError, UpstreamApiError
from webstack.routers import social_oauth as social_router
from webstack.services.social_oauth import SocialOAuthClient


def _facebook_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/oauth/access_token"):
        if request.url.params.get("grant_type") == "fb_exchange_token":
            assert request.url.params["fb_exchange_token"] == "short-lived"
            return httpx.Response(200, json={"access_token": "long-lived"})
        return httpx.Response(200, json={"access_token": "short-lived", "expires_in": 3600})
    if request.url.path == "/me":
        assert request.url.params["access_token"] == "long-lived"
        return httpx.Response(200, json={"id": "42", "name": "Ada"})
    return httpx.Response(404, json={})


def test_facebook_exchange_upgrades_to_long_lived_token():
    client = SocialOAuthClient(transport=httpx.MockTransport(_facebook_handler))
    token = asyncio.run(client.exchange(platform="facebook", code="c", redirect_uri="https://app/cb"))

    assert token["access_token"] == "long-lived"
    assert token["expires_in"] == 5184000
    assert token["profile"] == {"id": "42", "name": "Ada"}
    assert token["refresh_token"] is None


def test_facebook_error_body_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Invalid verification code"}})

    client = SocialOAuthClient(transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamApiError, match="Invalid verification code"):
        asyncio.run(client.exchange(platform="facebook", code="c", redirect_uri="https://app/cb"))


def test_twitter_requires_credentials():
    client = SocialOAuthClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))
    with pytest.raises(ConfigurationError):
        asyncio.run(client.exchange(platform="twitter", code="c", redirect_uri="https://app/cb"))


def test_unknown_platform_is_rejected():
    client = SocialOAuthClient()
    with pytest.raises(FunctionError) as excinfo:
        asyncio.run(client.exchange(platform="myspace", code="c", redirect_uri="https://app/cb"))
    assert excinfo.value.status_code == 400


def test_route_requires_code_and_redirect(api_client):
    resp = api_client.post("/functions/social-oauth-token", json={"platform": "facebook"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required parameters: code, redirectUri"


def test_route_returns_token(api_client, monkeypatch):
    monkeypatch.setattr(
        social_router, "social_client", SocialOAuthClient(transport=httpx.MockTransport(_facebook_handler))
    )
    resp = api_client.post(
        "/functions/social-oauth-token",
        json={"platform": "facebook", "code": "c", "redirectUri": "https://app/cb"},
    )
    assert resp.status_code == 200
    assert resp.json()["access_token"] == "long-lived"


def test_route_unsupported_platform(api_client):
    resp = api_client.post(
        "/functions/social-oauth-token",
        json={"platform": "myspace", "code": "c", "redirectUri": "https://app/cb"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Unsupported platform"}

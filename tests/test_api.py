from fastapi import APIRouter
from fastapi.testclient import TestClient
from sqlalchemy.exc import ProgrammingError

from webstack.errors import UpstreamApiError
from webstack.main import create_app


def test_health(api_client):
    resp = api_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_health_db(api_client):
    resp = api_client.get("/health/db")
    assert resp.status_code == 200
    assert resp.json() == {"db": "ok"}


def test_cors_preflight_allows_site_origin(api_client):
    resp = api_client.options(
        "/functions/ai-assistant",
        headers={"Origin": "https://webstack.ceo", "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "https://webstack.ceo"


def test_invalid_bearer_token_is_rejected(api_client):
    resp = api_client.get("/auth/google/token", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_error_envelopes():
    app = create_app()
    failing = APIRouter()

    @failing.get("/failing/upstream")
    def upstream():
        raise UpstreamApiError(message="Upstream exploded", status_code=502, details={"code": "E1"})

    @failing.get("/failing/schema")
    def schema():
        raise ProgrammingError("SELECT 1", {}, Exception("no such column: visitor_sessions.domain"))

    @failing.get("/failing/crash")
    def crash():
        raise KeyError("boom")

    app.include_router(failing)
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.get("/failing/upstream")
    assert resp.status_code == 502
    assert resp.json() == {"success": False, "error": "Upstream exploded", "details": {"code": "E1"}}

    resp = client.get("/failing/schema")
    assert resp.status_code == 503
    assert "alembic upgrade head" in resp.json()["error"]

    resp = client.get("/failing/crash")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Unexpected error"}

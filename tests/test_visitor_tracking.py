from sqlalchemy import select

from webstack.db.models import FormSubmission, Lead, PageView, ToolInteraction, VisitorSession
from webstack.services.session_ids import SESSION_COOKIE_NAME, generate_session_id, hash_ip

TRACK_URL = "/functions/visitor-session-track"


def test_generate_session_id_format():
    session_id = generate_session_id(now_ms=1700000000000)
    millis, suffix = session_id.split("-")
    assert millis == "1700000000000"
    assert len(suffix) == 9
    assert suffix.isalnum() and suffix == suffix.lower()


def test_hash_ip_is_stable_and_skips_empty():
    assert hash_ip(None) is None
    assert hash_ip("") is None
    assert hash_ip("10.0.0.1") == hash_ip("10.0.0.1")
    assert len(hash_ip("10.0.0.1")) == 64


def test_init_creates_session_and_sets_cookie(api_client, db_session):
    resp = api_client.post(
        TRACK_URL,
        json={
            "action": "init",
            "session_id": "1700000000000-abcdefghi",
            "first_page": "/pricing",
            "referrer": "https://google.com",
            "domain": "example.com",
        },
        headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1", "user-agent": "pytest-agent"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body == {"success": True, "session_id": "1700000000000-abcdefghi", "recovered": False}
    assert resp.cookies.get(SESSION_COOKIE_NAME) == "1700000000000-abcdefghi"

    row = db_session.scalars(select(VisitorSession)).one()
    assert row.first_page == "/pricing"
    assert row.domain == "example.com"
    assert row.user_agent == "pytest-agent"
    assert row.ip_hash == hash_ip("203.0.113.9")
    assert row.user_id is None


def test_init_is_idempotent_and_keeps_first_page(api_client, db_session):
    payload = {"action": "init", "session_id": "s-1", "first_page": "/"}
    api_client.post(TRACK_URL, json=payload)
    api_client.post(TRACK_URL, json={**payload, "first_page": "/other"})

    rows = db_session.scalars(select(VisitorSession)).all()
    assert len(rows) == 1
    assert rows[0].first_page == "/"


def test_init_without_session_id_generates_one(api_client):
    resp = api_client.post(TRACK_URL, json={"action": "init", "first_page": "/"})
    assert resp.status_code == 200
    session_id = resp.json()["session_id"]
    assert "-" in session_id
    assert resp.cookies.get(SESSION_COOKIE_NAME) == session_id


def test_init_attaches_signed_in_user(api_client, db_session, auth_headers):
    api_client.post(TRACK_URL, json={"action": "init", "session_id": "s-anon"})
    resp = api_client.post(TRACK_URL, json={"action": "init", "session_id": "s-anon"}, headers=auth_headers)
    assert resp.status_code == 200

    row = db_session.scalars(select(VisitorSession)).one()
    assert row.user_id == "user-1"


def test_touch_recreates_missing_session(api_client, db_session):
    resp = api_client.post(TRACK_URL, json={"action": "touch", "session_id": "s-gone"})
    assert resp.status_code == 200
    assert resp.json()["recovered"] is True

    resp = api_client.post(TRACK_URL, json={"action": "touch", "session_id": "s-gone"})
    assert resp.json()["recovered"] is False
    assert db_session.scalars(select(VisitorSession).where(VisitorSession.session_id == "s-gone")).one()


def test_touch_recovery_keeps_landing_details(api_client, db_session):
    resp = api_client.post(
        TRACK_URL,
        json={
            "action": "touch",
            "session_id": "s-lost",
            "first_page": "/pricing",
            "referrer": "https://google.com/",
            "user_agent": "Mozilla/5.0",
        },
    )
    assert resp.json()["recovered"] is True

    row = db_session.scalars(select(VisitorSession).where(VisitorSession.session_id == "s-lost")).one()
    assert row.first_page == "/pricing"
    assert row.referrer == "https://google.com/"
    assert row.user_agent == "Mozilla/5.0"


def test_touch_uses_cookie_session(api_client, db_session):
    api_client.cookies.set(SESSION_COOKIE_NAME, "s-cookie")
    resp = api_client.post(TRACK_URL, json={"action": "touch"})
    assert resp.status_code == 200
    assert resp.json()["session_id"] == "s-cookie"


def test_page_view_records_row(api_client, db_session):
    resp = api_client.post(
        TRACK_URL,
        json={
            "action": "page_view",
            "session_id": "s-1",
            "page_path": "/features",
            "page_title": "Features",
        },
    )
    assert resp.status_code == 200

    view = db_session.scalars(select(PageView)).one()
    assert view.page_path == "/features"
    assert view.page_title == "Features"
    assert view.time_on_page == 0
    assert view.scroll_depth == 0


def test_page_view_requires_path(api_client):
    resp = api_client.post(TRACK_URL, json={"action": "page_view", "session_id": "s-1"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Missing page_path"}


def test_missing_action_or_session_is_rejected(api_client):
    resp = api_client.post(TRACK_URL, json={"session_id": "s-1"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing action/session_id"

    resp = api_client.post(TRACK_URL, json={"action": "touch"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing action/session_id"


def test_blank_action_or_session_is_rejected(api_client, db_session):
    resp = api_client.post(TRACK_URL, json={"action": "", "session_id": "s-1"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing action/session_id"

    resp = api_client.post(TRACK_URL, json={"action": "touch", "session_id": "   "})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing action/session_id"
    assert db_session.scalars(select(VisitorSession)).first() is None


def test_session_id_is_trimmed(api_client, db_session):
    resp = api_client.post(TRACK_URL, json={"action": "touch", "session_id": "  s-pad  "})
    assert resp.json()["session_id"] == "s-pad"
    assert db_session.scalars(select(VisitorSession.session_id)).one() == "s-pad"


def test_unknown_action_fails_validation(api_client):
    resp = api_client.post(TRACK_URL, json={"action": "explode", "session_id": "s-1"})
    assert resp.status_code == 422


def test_tool_interaction_is_recorded(api_client, db_session):
    resp = api_client.post(
        "/tracking/tool-interactions",
        json={
            "session_id": "s-1",
            "tool_name": "seo-audit",
            "tool_type": "analyzer",
            "page_path": "/tools",
            "metadata": {"domain": "example.com"},
        },
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    row = db_session.scalars(select(ToolInteraction)).one()
    assert row.tool_name == "seo-audit"
    assert row.metadata_json == {"domain": "example.com"}


def test_tool_interaction_requires_session(api_client):
    resp = api_client.post("/tracking/tool-interactions", json={"tool_name": "seo-audit"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing session_id"


def test_form_submission_falls_back_to_cookie(api_client, db_session):
    api_client.cookies.set(SESSION_COOKIE_NAME, "s-cookie")
    resp = api_client.post(
        "/tracking/form-submissions",
        json={"form_name": "newsletter", "form_data": {"email": "a@b.co"}},
    )
    assert resp.status_code == 200

    row = db_session.scalars(select(FormSubmission)).one()
    assert row.session_id == "s-cookie"
    assert row.form_data == {"email": "a@b.co"}


def test_save_lead(api_client, db_session):
    resp = api_client.post(
        "/tracking/leads",
        json={"email": "lead@example.com", "phone": "555-0100", "domain": "example.com", "metric_type": "traffic"},
    )
    assert resp.status_code == 200

    lead = db_session.scalars(select(Lead)).one()
    assert lead.email == "lead@example.com"
    assert lead.metric_type == "traffic"


def test_save_lead_rejects_long_phone(api_client):
    resp = api_client.post("/tracking/leads", json={"email": "lead@example.com", "phone": "1" * 21})
    assert resp.status_code == 422

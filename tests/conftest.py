import os
import sys
import time
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

_TEST_DB = ROOT_DIR / "tests" / ".webstack-test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-supabase-jwt-secret")
os.environ.setdefault("BRON_API_ID", "bron-id")
os.environ.setdefault("BRON_API_KEY", "bron-key")
os.environ.setdefault("BRON_API_SECRET", "bron-secret")
os.environ.setdefault("GOOGLE_CLIENT_ID", "google-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "google-client-secret")
os.environ.setdefault("GOOGLE_PLACES_API_KEY", "places-key")
os.environ.setdefault("FACEBOOK_APP_ID", "fb-app")
os.environ.setdefault("FACEBOOK_APP_SECRET", "fb-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from webstack.db.base import Base, SessionLocal, engine, init_db  # noqa: E402
from webstack.main import app  # noqa: E402
from webstack.services.rate_limit import limiter  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def create_schema():
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if _TEST_DB.exists():
        _TEST_DB.unlink()


@pytest.fixture(autouse=True)
def clean_state():
    limiter.reset()
    yield
    limiter.reset()
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def api_client():
    app.dependency_overrides.clear()
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def make_token(
    user_id: str = "user-1",
    *,
    email: str = "owner@example.com",
    provider: str = "email",
    user_metadata: dict | None = None,
) -> str:
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(time.time()) + 3600,
        "app_metadata": {"provider": provider},
        "user_metadata": user_metadata or {},
    }
    return jwt.encode(claims, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


@pytest.fixture()
def token_factory():
    return make_token


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}

from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env values for components that read os.environ directly.
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./webstack.db"
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # Comma separated list of allowed browser origins.
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173,https://webstack.ceo"

    SUPABASE_JWT_SECRET: str | None = None
    SUPABASE_JWT_AUDIENCE: str = "authenticated"

    PUBLIC_SITE_URL: str = "https://webstack.ceo"
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0

    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_PLACES_API_KEY: str | None = None

    FACEBOOK_APP_ID: str | None = None
    FACEBOOK_APP_SECRET: str | None = None
    TWITTER_CLIENT_ID: str | None = None
    TWITTER_CLIENT_SECRET: str | None = None
    LINKEDIN_CLIENT_ID: str | None = None
    LINKEDIN_CLIENT_SECRET: str | None = None

    STRIPE_SECRET_KEY: str | None = None

    BRON_FEED_BASE_URL: str = "https://public.imagehosting.space/feed"
    BRON_API_ID: str | None = None
    BRON_API_KEY: str | None = None
    BRON_API_SECRET: str | None = None

    CADE_API_BASE_URL: str = "https://logfire-us.pydantic.dev/rasenguy/cade-service-staging"
    CADE_API_SECRET: str | None = None

    AI_GATEWAY_BASE_URL: str = "https://ai.gateway.lovable.dev/v1"
    AI_GATEWAY_API_KEY: str | None = None
    AI_DEFAULT_MODEL: str = "google/gemini-3-flash-preview"
    AI_CHAT_MAX_TOKENS: int = 500
    AI_CHAT_TEMPERATURE: float = 0.7
    CALENDLY_URL: str = "https://calendly.com/webstack-ceo/strategy-call"

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("DATABASE_URL must not be empty")
        return value.strip()

    @property
    def cors_origins(self) -> list[str]:
        return sorted({origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()})

    @property
    def site_url(self) -> str:
        return self.PUBLIC_SITE_URL.rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

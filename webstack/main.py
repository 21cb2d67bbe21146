import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from webstack.config import settings
from webstack.db.base import engine
from webstack.errors import ConfigurationError, FunctionError, UpstreamApiError
from webstack.routers import (
    ai_assistant,
    bron,
    cade,
    checkout,
    forms,
    google_auth,
    keyword_history,
    live_visitors,
    places,
    social_oauth,
    subscriptions,
    visitor_tracking,
)

logger = logging.getLogger(__name__)


def _is_schema_mismatch_programming_error(exc: ProgrammingError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in ("42703", "42P01"):
        return True
    message = str(orig or exc).lower()
    return any(
        marker in message
        for marker in (
            "undefined column",
            "does not exist",
            "no such column",
            "no such table",
        )
    )


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    app = FastAPI(
        title="Webstack API",
        default_response_class=ORJSONResponse,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(FunctionError)
    async def function_error_handler(_request: Request, exc: FunctionError) -> ORJSONResponse:
        return ORJSONResponse(status_code=exc.status_code, content=exc.to_content(), headers=exc.headers)

    @app.exception_handler(UpstreamApiError)
    async def upstream_error_handler(_request: Request, exc: UpstreamApiError) -> ORJSONResponse:
        content = {"success": False, "error": str(exc)}
        if exc.details is not None:
            content["details"] = exc.details
        return ORJSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(_request: Request, exc: ConfigurationError) -> ORJSONResponse:
        logger.error("Integration not configured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.exception_handler(ProgrammingError)
    async def programming_error_handler(_request: Request, exc: ProgrammingError) -> ORJSONResponse:
        logger.exception("Database programming error", exc_info=exc)
        if _is_schema_mismatch_programming_error(exc):
            return ORJSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "error": "Database schema is out of date. Run `alembic upgrade head` and redeploy.",
                },
            )
        return ORJSONResponse(status_code=500, content={"success": False, "error": "Database query failed."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"success": False, "error": "Unexpected error"})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(visitor_tracking.router)
    app.include_router(live_visitors.router)
    app.include_router(google_auth.router)
    app.include_router(social_oauth.router)
    app.include_router(bron.router)
    app.include_router(cade.router)
    app.include_router(checkout.router)
    app.include_router(places.router)
    app.include_router(keyword_history.router)
    app.include_router(subscriptions.router)
    app.include_router(ai_assistant.router)
    app.include_router(forms.router)

    return app


app = create_app()

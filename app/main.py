import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.config import settings
from app.db import models  # noqa: F401  registers tables on Base.metadata
from app.db.base import Base, engine
from app.llm.client import LLMClientConfigError
from app.routers import agents, brand_kits, canvas, products, profiles, projects, shares, stats
from app.services.media_storage import MediaStorageConfigurationError

logger = logging.getLogger(__name__)


def _is_schema_mismatch_error(exc: Exception) -> bool:
    message = str(getattr(exc, "orig", None) or exc).lower()
    return "no such table" in message or "no such column" in message


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Listing Canvas API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MediaStorageConfigurationError)
    async def media_storage_configuration_error_handler(
        _request: Request, exc: MediaStorageConfigurationError
    ) -> ORJSONResponse:
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(LLMClientConfigError)
    async def llm_configuration_error_handler(_request: Request, exc: LLMClientConfigError) -> ORJSONResponse:
        logger.error("AI provider is not configured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(ProgrammingError)
    @app.exception_handler(OperationalError)
    async def database_error_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Database error", exc_info=exc)
        if _is_schema_mismatch_error(exc):
            return ORJSONResponse(
                status_code=503,
                content={"detail": "Database schema is out of date. Restart the service to create missing tables."},
            )
        return ORJSONResponse(status_code=500, content={"detail": "Database query failed."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

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

    app.include_router(projects.router)
    app.include_router(products.router)
    app.include_router(agents.router)
    app.include_router(brand_kits.router)
    app.include_router(canvas.router)
    app.include_router(shares.router)
    app.include_router(profiles.router)
    app.include_router(stats.router)

    return app


app = create_app()

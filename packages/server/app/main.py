"""
TaskHub API Server

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import engine
from app.core.errors import register_error_handlers
from app.core.logging import configure_logging
from app.core.middleware import CSRFMiddleware, RequestContextMiddleware, SecurityHeadersMiddleware
from app.core.redis import close_redis, ping_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router
from taskhub_shared.schemas.common import ErrorResponse

settings = get_settings()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("taskhub.starting", debug=settings.debug)
    yield
    log.info("taskhub.shutting_down")
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="TaskHub",
        description="Tasks, projects and teams with access control and notifications.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    register_error_handlers(app)

    # Middleware, innermost first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token", "X-Admin-Key"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    app.add_middleware(RequestContextMiddleware)

    error_responses = {status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 409)}
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"], responses=error_responses)
    app.include_router(api_v1_router, prefix="/api/v1", responses=error_responses)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness: the database answers, Redis is reported separately."""
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        try:
            redis_ok = await ping_redis()
        except Exception as exc:
            log.warning("ready.redis_unavailable", error=str(exc))
            redis_ok = False
        return {"status": "ready", "redis": "ok" if redis_ok else "unavailable"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)

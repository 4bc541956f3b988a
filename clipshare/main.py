"""
FastAPI application entry point.

Uses an application factory (create_app) so tests can build a fresh app
and override its dependencies.

For local development:
    uvicorn clipshare.main:app --reload

For production:
    gunicorn clipshare.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import auth, health, videos
from .config.settings import get_settings
from .core.videos.errors import (
    ForbiddenError,
    QuotaExceededError,
    UnauthenticatedError,
    UpstreamUnavailableError,
    VideoAccessError,
)
from .infrastructure.snowflake.client import SnowflakeConnectionError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)

# Checked in order; subclasses must come before their parents
ERROR_STATUS_CODES: list[tuple[type[VideoAccessError], int]] = [
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (QuotaExceededError, status.HTTP_403_FORBIDDEN),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (UpstreamUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(error: VideoAccessError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(error: VideoAccessError) -> dict[str, str]:
    # VideoNotFoundError renders exactly like ForbiddenError
    if isinstance(error, ForbiddenError):
        return {"detail": ForbiddenError.default_message, "code": ForbiddenError.code}
    return {"detail": error.message, "code": error.code}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration; nothing to clean up on shutdown."""
    settings = get_settings()

    logger.info(
        "ClipShare API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
                "identity": settings.identity_mock_mode,
            },
            "subscription_gating": settings.subscription_gating_enabled,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("ClipShare API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at import time for the server, and again by tests that
    want an app with their own dependency overrides.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Video sharing backend.

        ## Authentication

        Requests are authenticated by the identity provider's session
        cookie. Anonymous callers may only read shared videos.

        ## Workflow

        1. **Reserve a slot**: `POST /api/v1/videos/upload-url`
           - Creates the video record and returns signed upload URLs
        2. **Upload**: PUT the video and thumbnail bytes to the signed URLs
        3. **Share**: `PATCH /api/v1/videos/{id}/sharing`
        4. **Watch**: `GET /api/v1/videos/{id}`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Credentials are required because the session travels in a cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api/v1/videos",
        tags=["Videos"],
    )

    app.include_router(
        auth.router,
        prefix="/api/v1/auth",
        tags=["Auth"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "ClipShare API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(VideoAccessError)
    async def video_access_exception_handler(request: Request, exc: VideoAccessError):
        status_code = status_code_for(exc)

        logger.info(
            "Request rejected",
            extra={
                "path": request.url.path,
                "method": request.method,
                "code": exc.code,
                "status_code": status_code,
            }
        )

        return JSONResponse(status_code=status_code, content=error_body(exc))

    @app.exception_handler(SnowflakeConnectionError)
    async def database_unavailable_handler(request: Request, exc: SnowflakeConnectionError):
        logger.error(
            "Database unavailable",
            extra={"path": request.url.path, "error": str(exc)}
        )
        error = UpstreamUnavailableError()
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_body(error),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Logs the full error server-side and returns a generic message so
        stack traces never reach clients.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error. Please contact support if this persists.",
                "code": "internal_error",
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "clipshare.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )

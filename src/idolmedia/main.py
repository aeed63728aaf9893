"""Main application entrypoint for the idol media service."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from idolmedia.api.deps import envelope
from idolmedia.api.v1 import (
    routes_animations,
    routes_catalog,
    routes_god_idol,
    routes_health,
    routes_objects,
    routes_splash,
)
from idolmedia.core.config import settings
from idolmedia.core.exceptions import MediaServiceError
from idolmedia.core.logging import setup_logging
from idolmedia.core.middleware import HTTPErrorLoggingMiddleware

logger = logging.getLogger(__name__)


async def media_error_handler(request: Request, exc: MediaServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Request failed: {exc.message}", exc_info=exc)
    return envelope(None, exc.message, exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return envelope(None, str(exc.detail), exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return envelope(None, message, 400)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return envelope(None, "Internal server error", 500)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    # Initialize logging first
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
    )
    app.add_middleware(HTTPErrorLoggingMiddleware)

    app.add_exception_handler(MediaServiceError, media_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(routes_splash.router)
    app.include_router(routes_god_idol.router)
    app.include_router(routes_animations.router)
    app.include_router(routes_catalog.router)
    if settings.STORAGE_BACKEND == "local":
        app.include_router(routes_objects.router)

    return app


# Export app instance for ASGI servers
app = create_app()

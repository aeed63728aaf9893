"""Health check endpoint for the idol media service."""

from fastapi import APIRouter

from idolmedia.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Return service status, name and version without touching any store."""
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
    }

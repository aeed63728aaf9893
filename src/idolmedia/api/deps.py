"""FastAPI dependencies and the response envelope."""

from typing import Any, Optional

from fastapi.responses import JSONResponse

from idolmedia.models.media import ApiResponse
from idolmedia.services.registry import MediaServices, build_services

_services: Optional[MediaServices] = None


def get_services() -> MediaServices:
    """Return the process-wide service container, built on first use."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def envelope(data: Any = None, message: str = "", status_code: int = 200) -> JSONResponse:
    """Render the uniform ``{statusCode, data, message}`` body."""
    body = ApiResponse(status_code=status_code, data=data, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))

"""Splash video routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from idolmedia.api.deps import envelope, get_services
from idolmedia.services.registry import MediaServices

router = APIRouter(prefix="/api/v1/splash", tags=["splash"])


@router.post("", status_code=201)
async def create_splash(request: Request, services: MediaServices = Depends(get_services)) -> JSONResponse:
    """Create a splash from multipart fields ``serialNo``, ``isActive``, ``order`` and file ``video``."""
    service = services.splash
    splash = await service.create(request.headers, request.stream())
    return envelope(await service.present_one(splash), "Splash created successfully", 201)


@router.get("")
async def list_splashes(services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.splash
    return envelope(await service.present(await service.list()), "Splashes retrieved successfully")


@router.get("/active")
async def list_active_splashes(services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.splash
    return envelope(
        await service.present(await service.list_active()), "Active splashes retrieved successfully"
    )


@router.get("/{splash_id}")
async def get_splash(splash_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.splash
    return envelope(await service.present_one(await service.get(splash_id)), "Splash retrieved successfully")


@router.put("/{splash_id}")
async def update_splash(
    splash_id: str, request: Request, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    """Update any of ``serialNo``, ``isActive``, ``order``; a new ``video`` replaces the old one."""
    service = services.splash
    splash = await service.update(splash_id, request.headers, request.stream())
    return envelope(await service.present_one(splash), "Splash updated successfully")


@router.delete("/{splash_id}")
async def delete_splash(splash_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    await services.splash.delete(splash_id)
    return envelope(None, "Splash deleted successfully")


@router.patch("/{splash_id}/toggle")
async def toggle_splash(splash_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.splash
    splash = await service.toggle(splash_id)
    state = "activated" if splash.is_active else "deactivated"
    return envelope(await service.present_one(splash), f"Splash {state}")

"""God idol video routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from idolmedia.api.deps import envelope, get_services
from idolmedia.services.registry import MediaServices

router = APIRouter(prefix="/api/v1/god-idol", tags=["god-idol"])


@router.post("", status_code=201)
async def create_god_idol(request: Request, services: MediaServices = Depends(get_services)) -> JSONResponse:
    """Create an idol from multipart fields ``godId``, ``isActive`` and file ``video``."""
    service = services.god_idol
    god_idol = await service.create(request.headers, request.stream())
    return envelope(await service.present_one(god_idol), "God idol created successfully", 201)


@router.post("/with-animation", status_code=201)
async def create_god_idol_with_animation(
    request: Request, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    """Create an idol and its first animation from files ``godIdolVideo`` and ``animationVideo``."""
    service = services.god_idol
    result = await service.create_with_animation(request.headers, request.stream())
    return envelope(
        await service.present_pair(result), "God idol and animation created successfully", 201
    )


@router.get("")
async def list_god_idols(services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.god_idol
    return envelope(await service.present(await service.list()), "God idols retrieved successfully")


@router.get("/active")
async def list_active_god_idols(services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.god_idol
    return envelope(
        await service.present(await service.list_active()), "Active god idols retrieved successfully"
    )


@router.get("/god/{god_id}")
async def get_god_idol_by_god(god_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.god_idol
    return envelope(
        await service.present_one(await service.get_by_god(god_id)), "God idol retrieved successfully"
    )


@router.get("/{idol_id}")
async def get_god_idol(idol_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.god_idol
    return envelope(await service.present_one(await service.get(idol_id)), "God idol retrieved successfully")


@router.put("/{idol_id}")
async def update_god_idol(
    idol_id: str, request: Request, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    service = services.god_idol
    god_idol = await service.update(idol_id, request.headers, request.stream())
    return envelope(await service.present_one(god_idol), "God idol updated successfully")


@router.delete("/{idol_id}")
async def delete_god_idol(idol_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    await services.god_idol.delete(idol_id)
    return envelope(None, "God idol deleted successfully")


@router.patch("/{idol_id}/toggle")
async def toggle_god_idol(idol_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.god_idol
    god_idol = await service.toggle(idol_id)
    state = "activated" if god_idol.is_active else "deactivated"
    return envelope(await service.present_one(god_idol), f"God idol {state}")

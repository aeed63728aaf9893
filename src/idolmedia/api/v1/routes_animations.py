"""Animation routes: single videos and ZIP image sets."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from idolmedia.api.deps import envelope, get_services
from idolmedia.models.media import OrderUpdateRequest
from idolmedia.services.registry import MediaServices

router = APIRouter(prefix="/api/v1/animations", tags=["animations"])


@router.post("", status_code=201)
async def create_animation(request: Request, services: MediaServices = Depends(get_services)) -> JSONResponse:
    """Create an animation from fields ``godIdol``, ``category``, ``title`` and file ``video``."""
    service = services.animation
    animation = await service.create(request.headers, request.stream())
    return envelope(await service.present_one(animation), "Animation created successfully", 201)


@router.post("/upload-zip", status_code=201)
async def upload_animation_zip(
    request: Request, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    """Create an image-set animation from a ZIP archive in file field ``file``."""
    service = services.animation
    animation = await service.create_from_archive(request.headers, request.stream())
    return envelope(
        await service.present_one(animation),
        f"Animation created with {animation.total_images} images",
        201,
    )


@router.get("")
async def list_animations(services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.animation
    return envelope(await service.present(await service.list()), "Animations retrieved successfully")


@router.get("/active")
async def list_active_animations(services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.animation
    return envelope(
        await service.present(await service.list_active()), "Active animations retrieved successfully"
    )


@router.get("/category/{category_id}")
async def list_animations_by_category(
    category_id: str, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    service = services.animation
    return envelope(
        await service.present(await service.list_by_category(category_id)),
        "Animations retrieved successfully",
    )


@router.get("/god-idol/{god_idol_id}")
async def list_animations_by_god_idol(
    god_idol_id: str, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    service = services.animation
    return envelope(
        await service.present(await service.list_by_god_idol(god_idol_id)),
        "Animations retrieved successfully",
    )


@router.get("/{animation_id}")
async def get_animation(animation_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.animation
    return envelope(
        await service.present_one(await service.get(animation_id)), "Animation retrieved successfully"
    )


@router.put("/{animation_id}")
async def update_animation(
    animation_id: str, request: Request, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    service = services.animation
    animation = await service.update(animation_id, request.headers, request.stream())
    return envelope(await service.present_one(animation), "Animation updated successfully")


@router.delete("/{animation_id}")
async def delete_animation(animation_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    await services.animation.delete(animation_id)
    return envelope(None, "Animation deleted successfully")


@router.patch("/{animation_id}/toggle")
async def toggle_animation(animation_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    service = services.animation
    animation = await service.toggle(animation_id)
    state = "activated" if animation.is_active else "deactivated"
    return envelope(await service.present_one(animation), f"Animation {state}")


@router.patch("/{animation_id}/order")
async def update_animation_order(
    animation_id: str,
    body: OrderUpdateRequest,
    services: MediaServices = Depends(get_services),
) -> JSONResponse:
    service = services.animation
    animation = await service.update_order(animation_id, body.order)
    return envelope(await service.present_one(animation), "Animation order updated successfully")

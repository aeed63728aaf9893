"""Routes for registering gods and animation categories."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from idolmedia.api.deps import envelope, get_services
from idolmedia.models.media import AnimationCategoryCreateRequest, GodCreateRequest
from idolmedia.services.registry import MediaServices

router = APIRouter(prefix="/api/v1", tags=["catalog"])


def _dump(record) -> dict:
    return record.model_dump(mode="json", by_alias=True)


@router.post("/gods", status_code=201)
async def create_god(body: GodCreateRequest, services: MediaServices = Depends(get_services)) -> JSONResponse:
    god = await services.catalog.create_god(body)
    return envelope(_dump(god), "God created successfully", 201)


@router.get("/gods")
async def list_gods(services: MediaServices = Depends(get_services)) -> JSONResponse:
    gods = await services.catalog.list_gods()
    return envelope([_dump(god) for god in gods], "Gods retrieved successfully")


@router.get("/gods/{god_id}")
async def get_god(god_id: str, services: MediaServices = Depends(get_services)) -> JSONResponse:
    return envelope(_dump(await services.catalog.get_god(god_id)), "God retrieved successfully")


@router.post("/animation-categories", status_code=201)
async def create_animation_category(
    body: AnimationCategoryCreateRequest, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    category = await services.catalog.create_category(body)
    return envelope(_dump(category), "Animation category created successfully", 201)


@router.get("/animation-categories")
async def list_animation_categories(services: MediaServices = Depends(get_services)) -> JSONResponse:
    categories = await services.catalog.list_categories()
    return envelope([_dump(category) for category in categories], "Animation categories retrieved successfully")


@router.get("/animation-categories/{category_id}")
async def get_animation_category(
    category_id: str, services: MediaServices = Depends(get_services)
) -> JSONResponse:
    category = await services.catalog.get_category(category_id)
    return envelope(_dump(category), "Animation category retrieved successfully")

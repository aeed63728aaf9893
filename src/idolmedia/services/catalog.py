"""Owner entities referenced by uploads: gods and animation categories."""

import logging
import re
from typing import List

from idolmedia.core.exceptions import ConflictError, NotFoundError, ValidationError
from idolmedia.metadata.store import ANIMATION_CATEGORIES, GODS, MetadataStore
from idolmedia.models.media import (
    AnimationCategory,
    AnimationCategoryCreateRequest,
    God,
    GodCreateRequest,
    is_object_id,
)

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lower-case name with each run of non-alphanumerics replaced by ``_``."""
    return _NON_ALNUM.sub("_", name.strip().lower()).strip("_")


class CatalogService:
    """Plain JSON CRUD for the entities uploads hang off."""

    def __init__(self, store: MetadataStore):
        self.store = store

    async def create_god(self, request: GodCreateRequest) -> God:
        name = request.name.strip()
        if await self.store.find_one(GODS, {"name": name}):
            raise ConflictError("God with this name already exists")
        doc = await self.store.create(
            GODS,
            {
                "name": name,
                "image": request.image,
                "description": request.description,
                "is_active": True,
            },
        )
        logger.info(f"God created: id={doc['id']}, name={name}", extra={"record_id": doc["id"]})
        return God.model_validate(doc)

    async def list_gods(self) -> List[God]:
        docs = await self.store.find(GODS, sort=[("name", 1)])
        return [God.model_validate(doc) for doc in docs]

    async def get_god(self, god_id: str) -> God:
        if not is_object_id(god_id):
            raise ValidationError("Invalid God id")
        doc = await self.store.find_by_id(GODS, god_id)
        if doc is None:
            raise NotFoundError("God not found")
        return God.model_validate(doc)

    async def create_category(self, request: AnimationCategoryCreateRequest) -> AnimationCategory:
        name = request.name.strip()
        if await self.store.find_one(ANIMATION_CATEGORIES, {"name": name}):
            raise ConflictError("Category with this name already exists")
        doc = await self.store.create(
            ANIMATION_CATEGORIES,
            {
                "name": name,
                "slug": slugify(name),
                "icon": request.icon,
                "description": request.description,
                "order": request.order,
                "is_active": True,
            },
        )
        logger.info(
            f"Animation category created: id={doc['id']}, slug={doc['slug']}",
            extra={"record_id": doc["id"]},
        )
        return AnimationCategory.model_validate(doc)

    async def list_categories(self) -> List[AnimationCategory]:
        docs = await self.store.find(ANIMATION_CATEGORIES, sort=[("order", 1), ("name", 1)])
        return [AnimationCategory.model_validate(doc) for doc in docs]

    async def get_category(self, category_id: str) -> AnimationCategory:
        if not is_object_id(category_id):
            raise ValidationError("Invalid Animation category id")
        doc = await self.store.find_by_id(ANIMATION_CATEGORIES, category_id)
        if doc is None:
            raise NotFoundError("Animation category not found")
        return AnimationCategory.model_validate(doc)

"""Animation uploads: single videos and image sets expanded from ZIP archives."""

import logging
from typing import AsyncIterator, List, Mapping, Optional

from idolmedia.core.exceptions import ConflictError, NotFoundError, ValidationError
from idolmedia.metadata.store import ANIMATION_CATEGORIES, ANIMATIONS, GOD_IDOLS
from idolmedia.models.media import Animation, StagedObjectRef
from idolmedia.services.common import (
    AssetService,
    parse_bool,
    parse_int,
    require_object_id,
)
from idolmedia.uploads.coordinator import CommitResult
from idolmedia.uploads.session import SlotKind, SlotSpec, UploadSession, accept_zip

logger = logging.getLogger(__name__)

VIDEO_SLOT = SlotSpec(field_name="video", key_prefix="animations")
ARCHIVE_SLOT = SlotSpec(
    field_name="file",
    key_prefix="animations/images",
    kind=SlotKind.ARCHIVE,
    accept=accept_zip,
    reject_message="Only ZIP archives are allowed",
)


def _category_field(session: UploadSession) -> Optional[str]:
    return session.field("category") or session.field("categoryId")


class AnimationService(AssetService[Animation]):
    collection = ANIMATIONS
    model = Animation
    label = "Animation"
    default_sort = (("order", 1), ("created_at", -1))

    async def list_by_category(self, category_id: str) -> List[Animation]:
        category_id = require_object_id(category_id, "categoryId")
        return await self.list({"category_id": category_id, "is_active": True})

    async def list_by_god_idol(self, god_idol_id: str) -> List[Animation]:
        god_idol_id = require_object_id(god_idol_id, "godIdol")
        return await self.list({"god_idol_id": god_idol_id})

    async def _check_references(self, god_idol_id: Optional[str], category_id: str) -> None:
        if god_idol_id is not None and await self.store.find_by_id(GOD_IDOLS, god_idol_id) is None:
            raise NotFoundError("God idol not found with the provided godIdol")
        if await self.store.find_by_id(ANIMATION_CATEGORIES, category_id) is None:
            raise NotFoundError("Animation category not found")

    async def _check_unique(
        self, god_idol_id: Optional[str], category_id: str, exclude_id: Optional[str] = None
    ) -> None:
        existing = await self.store.find_one(
            ANIMATIONS,
            {"god_idol_id": god_idol_id, "category_id": category_id},
            exclude_id=exclude_id,
        )
        if existing:
            raise ConflictError("Animation already exists for this god idol in this category")

    def _base_doc(self, session: UploadSession) -> dict:
        order = session.field("order")
        return {
            "title": session.field("title", ""),
            "description": session.field("description", ""),
            "order": parse_int(order, "order", minimum=0) if order is not None else 0,
            "is_active": parse_bool(session.field("isActive"), "isActive"),
        }

    async def create(self, headers: Mapping[str, str], stream: AsyncIterator[bytes]) -> Animation:
        session = UploadSession([VIDEO_SLOT])

        async def validate(session: UploadSession) -> dict:
            god_idol_id = require_object_id(session.field("godIdol"), "godIdol")
            category_id = require_object_id(_category_field(session), "category")
            video = session.staged("video")
            if not isinstance(video, StagedObjectRef):
                raise ValidationError("video file is required")

            await self._check_references(god_idol_id, category_id)
            await self._check_unique(god_idol_id, category_id)

            return {
                **self._base_doc(session),
                "god_idol_id": god_idol_id,
                "category_id": category_id,
                "video": video.model_dump(),
                "images": [],
            }

        async def commit(session: UploadSession, doc: dict) -> CommitResult[Animation]:
            created = await self.store.create(ANIMATIONS, doc)
            return CommitResult(Animation.model_validate(created))

        animation = await self.coordinator.run(
            session, self._events(session, headers, stream), validate, commit
        )
        logger.info(
            f"Animation created: id={animation.id}, category_id={animation.category_id}",
            extra={"record_id": animation.id},
        )
        return animation

    async def create_from_archive(
        self, headers: Mapping[str, str], stream: AsyncIterator[bytes]
    ) -> Animation:
        """Create an image-set animation from one uploaded ZIP archive."""
        session = UploadSession([ARCHIVE_SLOT])

        async def validate(session: UploadSession) -> dict:
            category_id = require_object_id(_category_field(session), "category")
            title = session.field("title")
            if title is None:
                raise ValidationError("title is required")
            god_idol_id = None
            if session.field("godIdol") is not None:
                god_idol_id = require_object_id(session.field("godIdol"), "godIdol")

            images = session.staged("file")
            if images is None:
                raise ValidationError("ZIP file is required")
            if not images:
                raise ValidationError("No valid images found in archive")

            await self._check_references(god_idol_id, category_id)
            await self._check_unique(god_idol_id, category_id)

            return {
                **self._base_doc(session),
                "god_idol_id": god_idol_id,
                "category_id": category_id,
                "video": None,
                "images": [image.model_dump() for image in images],
            }

        async def commit(session: UploadSession, doc: dict) -> CommitResult[Animation]:
            created = await self.store.create(ANIMATIONS, doc)
            return CommitResult(Animation.model_validate(created))

        animation = await self.coordinator.run(
            session,
            self._events(
                session, headers, stream, max_file_size=self.settings.max_archive_size_bytes
            ),
            validate,
            commit,
        )
        logger.info(
            f"Animation created from archive: id={animation.id}, images={animation.total_images}",
            extra={"record_id": animation.id},
        )
        return animation

    async def update(
        self, animation_id: str, headers: Mapping[str, str], stream: AsyncIterator[bytes]
    ) -> Animation:
        await self.get(animation_id)
        session = UploadSession([VIDEO_SLOT])

        async def validate(session: UploadSession) -> tuple:
            current = await self.get(animation_id)
            patch: dict = {}

            god_idol_id = current.god_idol_id
            if session.field("godIdol") is not None:
                god_idol_id = require_object_id(session.field("godIdol"), "godIdol")
            category_id = current.category_id
            if _category_field(session) is not None:
                category_id = require_object_id(_category_field(session), "category")

            if (god_idol_id, category_id) != (current.god_idol_id, current.category_id):
                await self._check_references(god_idol_id, category_id)
                await self._check_unique(god_idol_id, category_id, exclude_id=animation_id)
                patch["god_idol_id"] = god_idol_id
                patch["category_id"] = category_id

            if session.field("title") is not None:
                patch["title"] = session.field("title")
            if session.has_field("description"):
                patch["description"] = session.field("description", "")
            if session.field("order") is not None:
                patch["order"] = parse_int(session.field("order"), "order", minimum=0)
            if session.field("isActive") is not None:
                patch["is_active"] = parse_bool(session.field("isActive"), "isActive")

            superseded = []
            video = session.staged("video")
            if isinstance(video, StagedObjectRef):
                if current.images:
                    raise ValidationError("Image-set animations cannot take a video")
                patch["video"] = video.model_dump()
                if current.video is not None:
                    superseded.append(current.video.key)
            return patch, superseded

        async def commit(session: UploadSession, plan: tuple) -> CommitResult[Animation]:
            patch, superseded = plan
            updated = await self.store.find_by_id_and_update(ANIMATIONS, animation_id, patch)
            if updated is None:
                raise NotFoundError("Animation not found")
            return CommitResult(Animation.model_validate(updated), superseded)

        return await self.coordinator.run(
            session, self._events(session, headers, stream), validate, commit
        )

    async def update_order(self, animation_id: str, order: int) -> Animation:
        await self.get(animation_id)
        updated = await self.store.find_by_id_and_update(ANIMATIONS, animation_id, {"order": order})
        if updated is None:
            raise NotFoundError("Animation not found")
        return Animation.model_validate(updated)

"""God idol video uploads, alone or paired with an animation."""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Mapping

from idolmedia.core.exceptions import ConflictError, NotFoundError, ValidationError
from idolmedia.metadata.store import ANIMATION_CATEGORIES, ANIMATIONS, GOD_IDOLS, GODS
from idolmedia.models.media import Animation, GodIdol, StagedObjectRef
from idolmedia.services.common import (
    AssetService,
    parse_bool,
    parse_int,
    require_object_id,
)
from idolmedia.uploads.coordinator import CommitResult
from idolmedia.uploads.session import SlotSpec, UploadSession

logger = logging.getLogger(__name__)

VIDEO_SLOT = SlotSpec(field_name="video", key_prefix="god-idol")
IDOL_VIDEO_SLOT = SlotSpec(field_name="godIdolVideo", key_prefix="god-idol")
ANIMATION_VIDEO_SLOT = SlotSpec(field_name="animationVideo", key_prefix="animations")


@dataclass
class IdolWithAnimation:
    god_idol: GodIdol
    animation: Animation


class GodIdolService(AssetService[GodIdol]):
    collection = GOD_IDOLS
    model = GodIdol
    label = "God idol"

    async def get_by_god(self, god_id: str) -> GodIdol:
        god_id = require_object_id(god_id, "godId")
        doc = await self.store.find_one(GOD_IDOLS, {"god_id": god_id})
        if doc is None:
            raise NotFoundError("God idol not found for this god")
        return GodIdol.model_validate(doc)

    async def _ensure_god(self, god_id: str) -> None:
        if await self.store.find_by_id(GODS, god_id) is None:
            raise NotFoundError("God not found with the provided godId")

    async def create(self, headers: Mapping[str, str], stream: AsyncIterator[bytes]) -> GodIdol:
        session = UploadSession([VIDEO_SLOT])

        async def validate(session: UploadSession) -> dict:
            god_id = require_object_id(session.field("godId"), "godId")
            video = session.staged("video")
            if not isinstance(video, StagedObjectRef):
                raise ValidationError("video file is required")

            await self._ensure_god(god_id)
            if await self.store.find_one(GOD_IDOLS, {"god_id": god_id}):
                raise ConflictError("Idol video already exists for this god")

            return {
                "god_id": god_id,
                "video": video.model_dump(),
                "is_active": parse_bool(session.field("isActive"), "isActive"),
            }

        async def commit(session: UploadSession, doc: dict) -> CommitResult[GodIdol]:
            created = await self.store.create(GOD_IDOLS, doc)
            return CommitResult(GodIdol.model_validate(created))

        god_idol = await self.coordinator.run(
            session, self._events(session, headers, stream), validate, commit
        )
        logger.info(
            f"God idol created: id={god_idol.id}, god_id={god_idol.god_id}",
            extra={"record_id": god_idol.id, "key": god_idol.video.key},
        )
        return god_idol

    async def create_with_animation(
        self, headers: Mapping[str, str], stream: AsyncIterator[bytes]
    ) -> IdolWithAnimation:
        """Create an idol and its first animation as one unit.

        Both videos are staged concurrently. Both records are written in a
        single store transaction, so a failed animation write also removes
        the idol, and both staged videos are unstaged.
        """
        session = UploadSession([IDOL_VIDEO_SLOT, ANIMATION_VIDEO_SLOT])

        async def validate(session: UploadSession) -> tuple:
            god_id = require_object_id(session.field("godId"), "godId")
            category_id = require_object_id(session.field("categoryId"), "categoryId")

            idol_video = session.staged("godIdolVideo")
            if not isinstance(idol_video, StagedObjectRef):
                raise ValidationError("God idol video is required")
            animation_video = session.staged("animationVideo")
            if not isinstance(animation_video, StagedObjectRef):
                raise ValidationError("Animation video is required")

            await self._ensure_god(god_id)
            if await self.store.find_by_id(ANIMATION_CATEGORIES, category_id) is None:
                raise NotFoundError("Animation category not found")
            if await self.store.find_one(GOD_IDOLS, {"god_id": god_id}):
                raise ConflictError("God idol already exists for this god")

            order = session.field("order")
            idol_doc = {
                "god_id": god_id,
                "video": idol_video.model_dump(),
                "is_active": parse_bool(session.field("isActive"), "isActive"),
            }
            animation_doc = {
                "category_id": category_id,
                "title": session.field("title", ""),
                "description": session.field("description", ""),
                "video": animation_video.model_dump(),
                "images": [],
                "order": parse_int(order, "order", minimum=0) if order is not None else 0,
                "is_active": True,
            }
            return idol_doc, animation_doc

        async def commit(session: UploadSession, plan: tuple) -> CommitResult[IdolWithAnimation]:
            idol_doc, animation_doc = plan
            async with self.store.transaction() as txn:
                idol = await self.store.create(GOD_IDOLS, idol_doc, session=txn)
                animation = await self.store.create(
                    ANIMATIONS, {**animation_doc, "god_idol_id": idol["id"]}, session=txn
                )
            return CommitResult(
                IdolWithAnimation(
                    god_idol=GodIdol.model_validate(idol),
                    animation=Animation.model_validate(animation),
                )
            )

        result = await self.coordinator.run(
            session, self._events(session, headers, stream), validate, commit
        )
        logger.info(
            f"God idol and animation created: idol={result.god_idol.id}, animation={result.animation.id}",
            extra={"record_id": result.god_idol.id},
        )
        return result

    async def update(
        self, idol_id: str, headers: Mapping[str, str], stream: AsyncIterator[bytes]
    ) -> GodIdol:
        await self.get(idol_id)
        session = UploadSession([VIDEO_SLOT])

        async def validate(session: UploadSession) -> tuple:
            current = await self.get(idol_id)
            patch: dict = {}

            if session.field("godId") is not None:
                god_id = require_object_id(session.field("godId"), "godId")
                if god_id != current.god_id:
                    await self._ensure_god(god_id)
                    existing = await self.store.find_one(
                        GOD_IDOLS, {"god_id": god_id}, exclude_id=idol_id
                    )
                    if existing:
                        raise ConflictError("Idol video already exists for this god")
                    patch["god_id"] = god_id

            if session.field("isActive") is not None:
                patch["is_active"] = parse_bool(session.field("isActive"), "isActive")

            superseded = []
            video = session.staged("video")
            if isinstance(video, StagedObjectRef):
                patch["video"] = video.model_dump()
                superseded.append(current.video.key)
            return patch, superseded

        async def commit(session: UploadSession, plan: tuple) -> CommitResult[GodIdol]:
            patch, superseded = plan
            updated = await self.store.find_by_id_and_update(GOD_IDOLS, idol_id, patch)
            if updated is None:
                raise NotFoundError("God idol not found")
            return CommitResult(GodIdol.model_validate(updated), superseded)

        return await self.coordinator.run(
            session, self._events(session, headers, stream), validate, commit
        )

    async def present_pair(self, result: IdolWithAnimation) -> dict:
        idol_doc, animation_doc = await self.present([result.god_idol, result.animation])
        return {"godIdol": idol_doc, "animation": animation_doc}

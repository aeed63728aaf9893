"""Splash video uploads."""

import logging
from typing import AsyncIterator, Mapping

from idolmedia.core.exceptions import ConflictError, NotFoundError, ValidationError
from idolmedia.metadata.store import SPLASHES
from idolmedia.models.media import Splash, StagedObjectRef
from idolmedia.services.common import AssetService, parse_bool, parse_int
from idolmedia.uploads.coordinator import CommitResult
from idolmedia.uploads.session import SlotSpec, UploadSession

logger = logging.getLogger(__name__)

VIDEO_SLOT = SlotSpec(field_name="video", key_prefix="splash")


class SplashService(AssetService[Splash]):
    collection = SPLASHES
    model = Splash
    label = "Splash"
    default_sort = (("order", 1), ("serial_no", 1))

    async def create(self, headers: Mapping[str, str], stream: AsyncIterator[bytes]) -> Splash:
        # Rejected before the body is read
        total = await self.store.count(SPLASHES)
        if total >= self.settings.MAX_SPLASH_COUNT:
            raise ValidationError(
                f"Maximum {self.settings.MAX_SPLASH_COUNT} splash videos allowed"
            )

        session = UploadSession([VIDEO_SLOT])

        async def validate(session: UploadSession) -> dict:
            video = session.staged("video")
            serial = session.field("serialNo")
            if serial is None or not isinstance(video, StagedObjectRef):
                raise ValidationError("serialNo and video file are required")
            serial_no = parse_int(serial, "serialNo", minimum=1)

            if await self.store.find_one(SPLASHES, {"serial_no": serial_no}):
                raise ConflictError("Serial number already exists")

            order = session.field("order")
            return {
                "serial_no": serial_no,
                "video": video.model_dump(),
                "is_active": parse_bool(session.field("isActive"), "isActive"),
                "order": parse_int(order, "order", minimum=0) if order is not None else serial_no,
            }

        async def commit(session: UploadSession, doc: dict) -> CommitResult[Splash]:
            created = await self.store.create(SPLASHES, doc)
            return CommitResult(Splash.model_validate(created))

        splash = await self.coordinator.run(
            session, self._events(session, headers, stream), validate, commit
        )
        logger.info(
            f"Splash created: id={splash.id}, serial_no={splash.serial_no}",
            extra={"record_id": splash.id, "key": splash.video.key},
        )
        return splash

    async def update(
        self, splash_id: str, headers: Mapping[str, str], stream: AsyncIterator[bytes]
    ) -> Splash:
        await self.get(splash_id)
        session = UploadSession([VIDEO_SLOT])

        async def validate(session: UploadSession) -> tuple:
            current = await self.get(splash_id)
            patch: dict = {}

            serial = session.field("serialNo")
            if serial is not None:
                serial_no = parse_int(serial, "serialNo", minimum=1)
                if serial_no != current.serial_no:
                    existing = await self.store.find_one(
                        SPLASHES, {"serial_no": serial_no}, exclude_id=splash_id
                    )
                    if existing:
                        raise ConflictError("Serial number already exists")
                    patch["serial_no"] = serial_no

            if session.field("isActive") is not None:
                patch["is_active"] = parse_bool(session.field("isActive"), "isActive")
            if session.field("order") is not None:
                patch["order"] = parse_int(session.field("order"), "order", minimum=0)

            superseded = []
            video = session.staged("video")
            if isinstance(video, StagedObjectRef):
                patch["video"] = video.model_dump()
                superseded.append(current.video.key)
            return patch, superseded

        async def commit(session: UploadSession, plan: tuple) -> CommitResult[Splash]:
            patch, superseded = plan
            updated = await self.store.find_by_id_and_update(SPLASHES, splash_id, patch)
            if updated is None:
                raise NotFoundError("Splash not found")
            return CommitResult(Splash.model_validate(updated), superseded)

        return await self.coordinator.run(
            session, self._events(session, headers, stream), validate, commit
        )

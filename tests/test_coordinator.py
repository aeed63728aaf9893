"""Tests for the upload transaction coordinator."""

import asyncio
from unittest.mock import patch

import pytest

from idolmedia.core.exceptions import ConflictError, StorageWriteError, ValidationError
from idolmedia.uploads.archive import ArchiveExpander
from idolmedia.uploads.coordinator import CommitResult, UploadTransactionCoordinator
from idolmedia.uploads.multipart import FieldEvent, FileEvent, FileStream
from idolmedia.uploads.session import SessionState, SlotSpec, UploadSession
from idolmedia.uploads.stager import ObjectStagingUploader

VIDEO = SlotSpec(field_name="video", key_prefix="god-idol")
SECOND_VIDEO = SlotSpec(field_name="animationVideo", key_prefix="animations")


@pytest.fixture
def stager(backend):
    return ObjectStagingUploader(backend)


@pytest.fixture
def coordinator(stager):
    return UploadTransactionCoordinator(stager, ArchiveExpander(stager))


def file_event(field_name, filename, content_type, data=b"video-bytes"):
    stream = FileStream()
    stream.feed(data)
    stream.close()
    return FileEvent(field_name=field_name, filename=filename, content_type=content_type, stream=stream)


async def events_from(*events):
    for event in events:
        yield event


async def validate_ok(session):
    return {"title": session.field("title")}


@pytest.mark.asyncio
async def test_commit_success(coordinator, stored_keys):
    session = UploadSession([VIDEO])
    committed = {}

    async def commit(session, plan):
        committed["video"] = session.staged("video")
        return CommitResult({"plan": plan})

    record = await coordinator.run(
        session,
        events_from(FieldEvent("title", " Morning "), file_event("video", "clip.mp4", "video/mp4")),
        validate_ok,
        commit,
    )

    assert record == {"plan": {"title": "Morning"}}
    assert session.state is SessionState.COMMITTED
    assert stored_keys() == [committed["video"].key]


@pytest.mark.asyncio
async def test_commit_failure_unstages_everything(coordinator, stored_keys):
    session = UploadSession([VIDEO, SECOND_VIDEO])

    async def commit(session, plan):
        raise ConflictError("Idol video already exists for this god")

    with pytest.raises(ConflictError):
        await coordinator.run(
            session,
            events_from(
                file_event("video", "a.mp4", "video/mp4"),
                file_event("animationVideo", "b.mp4", "video/mp4"),
            ),
            validate_ok,
            commit,
        )

    assert session.state is SessionState.ROLLED_BACK
    assert stored_keys() == []


@pytest.mark.asyncio
async def test_sibling_failure_unstages_successful_slot(coordinator, stager, stored_keys):
    session = UploadSession([VIDEO, SECOND_VIDEO])
    real_stage = stager.stage

    async def stage(key, data, content_type, filename=None):
        if key.startswith("animations/"):
            raise StorageWriteError("Failed to store file: quota exceeded")
        return await real_stage(key, data, content_type, filename=filename)

    async def commit(session, plan):
        pytest.fail("commit must not run after a failed upload")

    with patch.object(stager, "stage", side_effect=stage):
        with pytest.raises(StorageWriteError, match="quota exceeded"):
            await coordinator.run(
                session,
                events_from(
                    file_event("video", "a.mp4", "video/mp4"),
                    file_event("animationVideo", "b.mp4", "video/mp4"),
                ),
                validate_ok,
                commit,
            )

    assert session.state is SessionState.ROLLED_BACK
    assert stored_keys() == []


@pytest.mark.asyncio
async def test_rejected_mime_type_stages_nothing(coordinator, stored_keys):
    session = UploadSession([VIDEO])

    with pytest.raises(ValidationError, match="Only video files are allowed"):
        await coordinator.run(
            session,
            events_from(file_event("video", "photo.jpg", "image/jpeg")),
            validate_ok,
            lambda session, plan: None,
        )

    assert stored_keys() == []


@pytest.mark.asyncio
async def test_unexpected_file_field_rolls_back_other_slots(coordinator, stored_keys):
    session = UploadSession([VIDEO])

    with pytest.raises(ValidationError, match="Unexpected file field"):
        await coordinator.run(
            session,
            events_from(
                file_event("video", "a.mp4", "video/mp4"),
                file_event("thumbnail", "t.mp4", "video/mp4"),
            ),
            validate_ok,
            lambda session, plan: None,
        )

    assert stored_keys() == []


@pytest.mark.asyncio
async def test_empty_filename_means_no_file(coordinator, stored_keys):
    session = UploadSession([VIDEO])

    async def commit(session, plan):
        return CommitResult(session.staged("video"))

    record = await coordinator.run(
        session,
        events_from(file_event("video", "", "application/octet-stream", b"")),
        validate_ok,
        commit,
    )

    assert record is None
    assert stored_keys() == []


@pytest.mark.asyncio
async def test_validation_failure_unstages(coordinator, stored_keys):
    session = UploadSession([VIDEO])

    async def validate(session):
        raise ValidationError("serialNo and video file are required")

    with pytest.raises(ValidationError):
        await coordinator.run(
            session,
            events_from(file_event("video", "a.mp4", "video/mp4")),
            validate,
            lambda session, plan: None,
        )

    assert stored_keys() == []


@pytest.mark.asyncio
async def test_superseded_keys_deleted_after_commit(coordinator, stager, stored_keys):
    old = await stager.stage("god-idol/old.mp4", b"old", "video/mp4")
    session = UploadSession([VIDEO])

    async def commit(session, plan):
        assert "god-idol/old.mp4" in stored_keys()
        return CommitResult(session.staged("video"), superseded_keys=[old.key])

    new = await coordinator.run(
        session,
        events_from(file_event("video", "new.mp4", "video/mp4")),
        validate_ok,
        commit,
    )

    assert stored_keys() == [new.key]


@pytest.mark.asyncio
async def test_archive_slot_expands_images(coordinator, make_zip, stored_keys):
    from idolmedia.uploads.session import SlotKind, accept_zip

    archive_slot = SlotSpec(
        field_name="file",
        key_prefix="animations/images",
        kind=SlotKind.ARCHIVE,
        accept=accept_zip,
        reject_message="Only ZIP archives are allowed",
    )
    session = UploadSession([archive_slot])
    data = make_zip([("a.png", b"png"), ("b.png", b"png")])

    async def commit(session, plan):
        return CommitResult(session.staged("file"))

    images = await coordinator.run(
        session,
        events_from(file_event("file", "frames.zip", "application/zip", data)),
        validate_ok,
        commit,
    )

    assert [image.order for image in images] == [1, 2]
    assert all(image.key.startswith("animations/images/") for image in images)
    assert stored_keys() == sorted(image.key for image in images)


@pytest.mark.asyncio
async def test_earliest_failure_is_reported(coordinator, stager, stored_keys):
    session = UploadSession([VIDEO, SECOND_VIDEO])

    async def stage(key, data, content_type, filename=None):
        if key.startswith("god-idol/"):
            await asyncio.sleep(0.05)
            raise StorageWriteError("late")
        raise StorageWriteError("early")

    async def commit(session, plan):
        pytest.fail("commit must not run after a failed upload")

    with patch.object(stager, "stage", side_effect=stage):
        with pytest.raises(StorageWriteError, match="early"):
            await coordinator.run(
                session,
                events_from(
                    file_event("video", "a.mp4", "video/mp4"),
                    file_event("animationVideo", "b.mp4", "video/mp4"),
                ),
                validate_ok,
                commit,
            )

    assert session.state is SessionState.ROLLED_BACK
    assert stored_keys() == []

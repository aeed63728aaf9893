"""Upload transaction coordination.

Drives one upload session through
Receiving -> AwaitingUploads -> Validating -> Committing -> Committed, or
to RolledBack from any step before Committed. Object-store writes always
precede the metadata write. Superseded objects are deleted only after the
metadata write succeeded; objects staged by a failed session are deleted
before the error is reported.
"""

import asyncio
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, List, TypeVar

from idolmedia.core.exceptions import ValidationError
from idolmedia.core.logging import upload_id_context
from idolmedia.uploads.archive import ArchiveExpander
from idolmedia.uploads.multipart import FieldEvent, FileEvent, PartEvent
from idolmedia.uploads.session import (
    FileSlot,
    SessionState,
    SlotKind,
    SlotResult,
    SlotState,
    UploadSession,
)
from idolmedia.uploads.stager import ObjectStagingUploader, build_object_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CommitResult(Generic[T]):
    """Committed record plus the keys it no longer cites."""

    record: T
    superseded_keys: List[str] = field(default_factory=list)


Validator = Callable[[UploadSession], Awaitable[Any]]
Committer = Callable[[UploadSession, Any], Awaitable[CommitResult[T]]]


class UploadTransactionCoordinator:
    """Stage file parts concurrently, then validate and commit metadata."""

    def __init__(self, stager: ObjectStagingUploader, expander: ArchiveExpander):
        self.stager = stager
        self.expander = expander

    async def run(
        self,
        session: UploadSession,
        events: AsyncIterator[PartEvent],
        validate: Validator,
        commit: Committer[T],
    ) -> T:
        """Run a session to completion.

        Args:
            session: Fresh session in the Receiving state
            events: Parser events for the request body
            validate: Checks fields and staged files against the metadata
                store; its return value is handed to commit
            commit: Writes the metadata record(s)

        Returns:
            The committed record

        Raises:
            MediaServiceError: The first error of the session, after every
                object it staged has been unstaged
        """
        token = upload_id_context.set(session.upload_id)
        try:
            try:
                await self._receive(session, events)
                session.advance(SessionState.AWAITING_UPLOADS)
                await self._await_uploads(session)
                session.advance(SessionState.VALIDATING)
                plan = await validate(session)
                session.advance(SessionState.COMMITTING)
                outcome = await commit(session, plan)
            except Exception as e:
                await self._roll_back(session, e)
                raise

            session.advance(SessionState.COMMITTED)
            if outcome.superseded_keys:
                await self.stager.unstage_many(outcome.superseded_keys)
            logger.info(
                "Upload session committed",
                extra={"staged_keys": session.staged_keys},
            )
            return outcome.record
        finally:
            upload_id_context.reset(token)

    async def _receive(self, session: UploadSession, events: AsyncIterator[PartEvent]) -> None:
        """Collect fields and start one staging task per file part.

        Rejections do not stop the loop: the rest of the body is consumed
        and discarded, then the first rejection is raised.
        """
        try:
            async for event in events:
                if isinstance(event, FieldEvent):
                    session.fields[event.name] = event.value
                elif isinstance(event, FileEvent):
                    self._start_slot(session, event)
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        if session.error is not None:
            raise session.error

    def _start_slot(self, session: UploadSession, event: FileEvent) -> None:
        if not event.filename:
            # Empty file input
            event.stream.discard()
            return

        if session.error is not None:
            event.stream.discard()
            return

        slot = session.slots.get(event.field_name)
        if slot is None:
            event.stream.discard()
            session.reject(ValidationError(f"Unexpected file field: {event.field_name}"))
            return
        if slot.state is not SlotState.PENDING:
            event.stream.discard()
            session.reject(ValidationError(f"Only one file allowed for {event.field_name}"))
            return
        if not slot.spec.accept(event.content_type, event.filename):
            event.stream.discard()
            slot.state = SlotState.FAILED
            slot.error = ValidationError(slot.spec.reject_message)
            session.reject(slot.error)
            return

        slot.filename = event.filename
        slot.content_type = event.content_type
        slot.state = SlotState.UPLOADING
        slot.task = asyncio.create_task(self._stage_slot(session, slot, event))

    async def _stage_slot(
        self, session: UploadSession, slot: FileSlot, event: FileEvent
    ) -> SlotResult:
        try:
            data = await event.stream.read()
            if slot.spec.kind is SlotKind.ARCHIVE:
                stem = posixpath.splitext(posixpath.basename(event.filename))[0]
                result: SlotResult = await self.expander.expand(
                    data, build_object_key(slot.spec.key_prefix, stem)
                )
            else:
                key = build_object_key(slot.spec.key_prefix, event.filename)
                result = await self.stager.stage(
                    key, data, event.content_type, filename=event.filename
                )
        except Exception as e:
            slot.state = SlotState.FAILED
            slot.error = e
            session.failures.append(e)
            raise

        slot.result = result
        slot.state = SlotState.UPLOADED
        return result

    async def _await_uploads(self, session: UploadSession) -> None:
        """Wait for every slot, then raise the earliest failure."""
        tasks = [slot.task for slot in session.slots.values() if slot.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if session.failures:
            raise session.failures[0]

    async def _roll_back(self, session: UploadSession, error: BaseException) -> None:
        # Siblings still in flight may yet stage; wait so they are cleaned up too
        pending = [
            slot.task
            for slot in session.slots.values()
            if slot.task is not None and not slot.task.done()
        ]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        session.reject(error)
        session.advance(SessionState.ROLLED_BACK)

        keys = session.staged_keys
        logger.warning(
            f"Rolling back upload session: {error}",
            extra={"staged_keys": keys, "error_type": type(error).__name__},
        )
        if keys:
            await self.stager.unstage_many(keys)

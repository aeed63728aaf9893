"""Per-request upload session state."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Union
from uuid import uuid4

from idolmedia.models.media import ImageDescriptor, StagedObjectRef

SlotResult = Union[StagedObjectRef, List[ImageDescriptor]]


class SessionState(str, Enum):
    """Upload session lifecycle."""

    RECEIVING = "receiving"
    AWAITING_UPLOADS = "awaiting_uploads"
    VALIDATING = "validating"
    COMMITTING = "committing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS = {
    SessionState.RECEIVING: {SessionState.AWAITING_UPLOADS, SessionState.ROLLED_BACK},
    SessionState.AWAITING_UPLOADS: {SessionState.VALIDATING, SessionState.ROLLED_BACK},
    SessionState.VALIDATING: {SessionState.COMMITTING, SessionState.ROLLED_BACK},
    SessionState.COMMITTING: {SessionState.COMMITTED, SessionState.ROLLED_BACK},
    SessionState.COMMITTED: set(),
    SessionState.ROLLED_BACK: set(),
}


class SlotState(str, Enum):
    """Upload status of one file slot."""

    PENDING = "pending"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    FAILED = "failed"


class SlotKind(str, Enum):
    OBJECT = "object"  # staged as a single object
    ARCHIVE = "archive"  # expanded into images


def accept_video(content_type: str, filename: str) -> bool:
    return content_type.lower().startswith("video/")


def accept_zip(content_type: str, filename: str) -> bool:
    return content_type.lower() in (
        "application/zip",
        "application/x-zip-compressed",
        "application/x-zip",
    ) or filename.lower().endswith(".zip")


@dataclass(frozen=True)
class SlotSpec:
    """Declares one file field a flow accepts."""

    field_name: str
    key_prefix: str
    kind: SlotKind = SlotKind.OBJECT
    accept: Callable[[str, str], bool] = accept_video
    reject_message: str = "Only video files are allowed"


@dataclass
class FileSlot:
    spec: SlotSpec
    state: SlotState = SlotState.PENDING
    filename: Optional[str] = None
    content_type: Optional[str] = None
    task: Optional[asyncio.Task] = None
    result: Optional[SlotResult] = None
    error: Optional[BaseException] = None

    @property
    def staged_keys(self) -> List[str]:
        """Keys this slot left in the object store."""
        if self.result is None:
            return []
        if isinstance(self.result, list):
            return [image.key for image in self.result]
        return [self.result.key]


class UploadSession:
    """State of one multipart upload, owned by the request handler.

    ``advance`` is the only way to change ``state``; illegal transitions
    raise ``RuntimeError``.
    """

    def __init__(self, slots: Sequence[SlotSpec], upload_id: Optional[str] = None):
        self.upload_id = upload_id or uuid4().hex
        self.fields: Dict[str, str] = {}
        self.slots: Dict[str, FileSlot] = {spec.field_name: FileSlot(spec=spec) for spec in slots}
        self.state = SessionState.RECEIVING
        self.error: Optional[BaseException] = None
        # Staging failures in the order they happened
        self.failures: List[BaseException] = []

    @property
    def max_files(self) -> int:
        return len(self.slots)

    def advance(self, state: SessionState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal upload session transition {self.state.value} -> {state.value}")
        self.state = state

    def reject(self, error: BaseException) -> None:
        """Remember the first error seen while receiving."""
        if self.error is None:
            self.error = error

    def field(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return a stripped field value, or default when absent or blank."""
        value = self.fields.get(name)
        if value is None:
            return default
        value = value.strip()
        return value if value else default

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def staged(self, field_name: str) -> Optional[SlotResult]:
        slot = self.slots.get(field_name)
        return slot.result if slot is not None else None

    @property
    def staged_keys(self) -> List[str]:
        return [key for slot in self.slots.values() for key in slot.staged_keys]

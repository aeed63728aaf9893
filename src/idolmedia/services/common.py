"""Shared plumbing for the asset services."""

import logging
from typing import Any, AsyncIterator, Dict, Generic, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel

from idolmedia.core.config import Settings
from idolmedia.core.exceptions import NotFoundError, ValidationError
from idolmedia.metadata.store import MetadataStore
from idolmedia.models.media import is_object_id
from idolmedia.uploads.coordinator import UploadTransactionCoordinator
from idolmedia.uploads.multipart import PartEvent, StreamingMultipartParser
from idolmedia.uploads.presign import PresignedAccessIssuer
from idolmedia.uploads.session import UploadSession

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def parse_bool(value: Optional[str], name: str, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValidationError(f"{name} must be true or false")


def parse_int(value: Optional[str], name: str, minimum: Optional[int] = None) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{name} must be at least {minimum}")
    return number


def require_object_id(value: Optional[str], name: str) -> str:
    if not value:
        raise ValidationError(f"{name} is required")
    if not is_object_id(value):
        raise ValidationError(f"Invalid {name} format - must be a 24 character hex id")
    return value.lower()


class AssetService(Generic[M]):
    """Reads, toggles and deletes shared by every asset type."""

    collection: str
    model: Type[M]
    label: str
    default_sort: Sequence[Tuple[str, int]] = (("created_at", -1),)

    def __init__(
        self,
        store: MetadataStore,
        coordinator: UploadTransactionCoordinator,
        presigner: PresignedAccessIssuer,
        settings: Settings,
    ):
        self.store = store
        self.coordinator = coordinator
        self.stager = coordinator.stager
        self.presigner = presigner
        self.settings = settings

    def _events(
        self,
        session: UploadSession,
        headers: Mapping[str, str],
        stream: AsyncIterator[bytes],
        max_file_size: Optional[int] = None,
    ) -> AsyncIterator[PartEvent]:
        parser = StreamingMultipartParser(
            headers,
            stream,
            max_files=session.max_files,
            max_file_size=max_file_size or self.settings.max_upload_bytes,
            max_fields=self.settings.MAX_FIELDS,
            max_field_size=self.settings.max_field_size_bytes,
        )
        return parser.events()

    async def get(self, record_id: str) -> M:
        if not is_object_id(record_id):
            raise ValidationError(f"Invalid {self.label} id")
        doc = await self.store.find_by_id(self.collection, record_id)
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        return self.model.model_validate(doc)

    async def list(self, filter: Optional[Dict[str, Any]] = None) -> List[M]:
        docs = await self.store.find(self.collection, filter, sort=self.default_sort)
        return [self.model.model_validate(doc) for doc in docs]

    async def list_active(self) -> List[M]:
        return await self.list({"is_active": True})

    async def toggle(self, record_id: str) -> M:
        record = await self.get(record_id)
        doc = await self.store.find_by_id_and_update(
            self.collection, record_id, {"is_active": not record.is_active}
        )
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        return self.model.model_validate(doc)

    async def delete(self, record_id: str) -> None:
        """Delete the record, then the objects it cited."""
        record = await self.get(record_id)
        deleted = await self.store.delete_one(self.collection, {"id": record_id})
        if not deleted:
            raise NotFoundError(f"{self.label} not found")
        logger.info(f"Deleted {self.label} {record_id}", extra={"record_id": record_id})
        await self.stager.unstage_many(record.media_keys())

    async def present(self, records: Sequence[BaseModel]) -> List[Dict[str, Any]]:
        """Serialise records and attach fresh read URLs."""
        docs = [record.model_dump(mode="json", by_alias=True) for record in records]
        return await self.presigner.attach(docs)

    async def present_one(self, record: BaseModel) -> Dict[str, Any]:
        return (await self.present([record]))[0]

"""Media asset data models."""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def is_object_id(value: Optional[str]) -> bool:
    """Return True when value looks like a 24-hex document id."""
    return bool(value) and OBJECT_ID_PATTERN.match(value) is not None


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StagedObjectRef(CamelModel):
    """Durable reference to an object written to the object store."""

    model_config = ConfigDict(frozen=True)

    key: str
    url: str
    filename: str
    size: int
    content_type: str
    uploaded_at: datetime
    etag: Optional[str] = None


class ImageDescriptor(CamelModel):
    """One image staged out of an archive, ordered by archive position."""

    model_config = ConfigDict(frozen=True)

    key: str
    order: int
    filename: str
    size: int
    content_type: str
    uploaded_at: datetime
    etag: Optional[str] = None


class God(CamelModel):
    """Owner entity for god idols."""

    id: str
    name: str
    image: str = ""
    description: str = ""
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class AnimationCategory(CamelModel):
    """Owner entity for animations."""

    id: str
    name: str
    slug: str
    icon: str = ""
    description: str = ""
    is_active: bool = True
    order: int = 0
    created_at: datetime
    updated_at: datetime


class GodIdol(CamelModel):
    """Idol video, at most one per god."""

    id: str
    god_id: str
    video: StagedObjectRef
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    def media_keys(self) -> list[str]:
        return [self.video.key]


class Splash(CamelModel):
    """Splash video, at most one per serial number."""

    id: str
    serial_no: int = Field(ge=1)
    video: StagedObjectRef
    is_active: bool = True
    order: int = 0
    created_at: datetime
    updated_at: datetime

    def media_keys(self) -> list[str]:
        return [self.video.key]


class Animation(CamelModel):
    """Animation for a (god idol, category) pair.

    Either a single ``video`` or an ordered image set expanded from an
    archive. ``total_images`` is always derived from ``images``.
    """

    id: str
    god_idol_id: Optional[str] = None
    category_id: str
    title: str = ""
    description: str = ""
    video: Optional[StagedObjectRef] = None
    images: list[ImageDescriptor] = Field(default_factory=list)
    is_active: bool = True
    order: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime

    @computed_field(alias="totalImages")  # type: ignore[prop-decorator]
    @property
    def total_images(self) -> int:
        return len(self.images)

    def media_keys(self) -> list[str]:
        keys = [image.key for image in sorted(self.images, key=lambda i: i.order)]
        if self.video is not None:
            keys.insert(0, self.video.key)
        return keys


class ApiResponse(BaseModel):
    """Uniform response envelope."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    data: Any = None
    message: str = ""


class OrderUpdateRequest(BaseModel):
    """Request body for reordering an animation."""

    order: int = Field(ge=0)


class GodCreateRequest(BaseModel):
    """Request body for registering a god."""

    name: str = Field(min_length=1)
    image: str = Field(min_length=1)
    description: str = ""


class AnimationCategoryCreateRequest(BaseModel):
    """Request body for registering an animation category."""

    name: str = Field(min_length=1)
    icon: str = Field(min_length=1)
    description: str = ""
    order: int = 0

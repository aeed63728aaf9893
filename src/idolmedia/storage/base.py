"""Abstract object store backend interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PutResult:
    """What the object store reports back for a completed write."""

    etag: Optional[str] = None


class StorageBackend(ABC):
    """Abstract base class for object store backends.

    Backends raise their SDK's own exceptions; callers translate them.
    Deleting a key that does not exist must succeed silently.
    """

    @abstractmethod
    async def put_object(self, key: str, data: bytes, content_type: str) -> PutResult:
        """Write data under key in a single request.

        Args:
            key: Object key
            data: Full object content
            content_type: MIME type stored with the object

        Returns:
            PutResult with the store's integrity tag
        """
        pass

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """Delete the object stored under key."""
        pass

    @abstractmethod
    async def signed_read_url(self, key: str, ttl_seconds: int) -> str:
        """Generate a time-limited read URL for key."""
        pass

    @abstractmethod
    def object_url(self, key: str) -> str:
        """Return the direct (unsigned) URL of key."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass

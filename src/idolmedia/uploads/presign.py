"""Time-limited read URLs for stored objects."""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from idolmedia.core.exceptions import SigningError
from idolmedia.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class PresignedAccessIssuer:
    """Issue presigned read URLs, fresh on every call."""

    def __init__(self, backend: StorageBackend, default_ttl_seconds: int = 3600):
        self.backend = backend
        self.default_ttl_seconds = default_ttl_seconds

    async def issue(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        """Return a read URL for key valid for ttl_seconds.

        Raises:
            SigningError: If the backend cannot sign the URL
        """
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            return await self.backend.signed_read_url(key, ttl)
        except Exception as e:
            raise SigningError(f"Failed to sign read URL for {key}: {e}") from e

    async def issue_many(
        self, keys: Iterable[str], ttl_seconds: Optional[int] = None
    ) -> Dict[str, Optional[str]]:
        """Issue URLs for many keys; a key that fails to sign maps to None."""
        unique_keys = list(dict.fromkeys(keys))
        results = await asyncio.gather(
            *(self.issue(key, ttl_seconds) for key in unique_keys),
            return_exceptions=True,
        )

        urls: Dict[str, Optional[str]] = {}
        for key, result in zip(unique_keys, results):
            if isinstance(result, BaseException):
                logger.error(f"Error generating signed URL for {key}: {result}", extra={"key": key})
                urls[key] = None
            else:
                urls[key] = result
        return urls

    async def attach(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Add ``signedUrl`` to every ``video`` and ``images[]`` entry in place.

        Documents are serialised records (camelCase). One signing failure
        nulls that entry's URL only.
        """
        media = []
        for doc in documents:
            if doc.get("video"):
                media.append(doc["video"])
            media.extend(doc.get("images") or [])

        urls = await self.issue_many(item["key"] for item in media)
        for item in media:
            item["signedUrl"] = urls.get(item["key"])
        return documents

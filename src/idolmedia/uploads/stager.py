"""Object staging: durable writes to the object store ahead of metadata commit."""

import asyncio
import logging
import posixpath
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from idolmedia.core.exceptions import StorageWriteError
from idolmedia.models.media import StagedObjectRef
from idolmedia.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def sanitize_filename(filename: str) -> str:
    """Remove path traversal and dangerous characters."""
    safe = filename.replace("../", "").replace("..\\", "")
    safe = safe.replace("/", "_").replace("\\", "_")
    safe = re.sub(r"[^a-zA-Z0-9._-]", "_", safe)
    safe = safe.lstrip(".")
    return safe[:200] or "file"


def build_object_key(prefix: str, filename: str) -> str:
    """Synthesize a collision-resistant key.

    ``{prefix}/{epoch_ms}-{random}-{sanitized basename}``
    """
    basename = posixpath.basename(filename.replace("\\", "/"))
    timestamp = int(time.time() * 1000)
    suffix = secrets.token_hex(4)
    return f"{prefix.strip('/')}/{timestamp}-{suffix}-{sanitize_filename(basename)}"


class ObjectStagingUploader:
    """Stage and unstage objects.

    ``stage`` performs exactly one write and never retries. ``unstage`` is
    best-effort: a failed delete is logged and otherwise ignored.
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    async def stage(
        self,
        key: str,
        data: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> StagedObjectRef:
        """Write data under key and return a reference to it.

        Raises:
            StorageWriteError: If the object store rejects or fails the write
        """
        try:
            result = await self.backend.put_object(key, data, content_type)
        except Exception as e:
            logger.error(
                f"Failed to stage {key}: {e}",
                extra={"key": key, "backend": self.backend.get_backend_name()},
            )
            raise StorageWriteError(f"Failed to store file: {e}") from e

        logger.info(
            f"Staged {key}",
            extra={"key": key, "size_bytes": len(data), "content_type": content_type},
        )
        return StagedObjectRef(
            key=key,
            url=self.backend.object_url(key),
            filename=filename or posixpath.basename(key),
            size=len(data),
            content_type=content_type,
            uploaded_at=datetime.now(timezone.utc),
            etag=result.etag,
        )

    async def unstage(self, key: str) -> None:
        """Delete key, logging instead of raising on failure."""
        try:
            await self.backend.delete_object(key)
        except Exception as e:
            logger.error(f"Failed to delete {key}: {e}", extra={"key": key}, exc_info=True)
            return
        logger.info(f"Deleted {key}", extra={"key": key})

    async def unstage_many(self, keys: Iterable[str]) -> None:
        await asyncio.gather(*(self.unstage(key) for key in keys))

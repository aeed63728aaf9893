"""Archive expansion: stage every image inside a ZIP upload."""

import asyncio
import io
import logging
import mimetypes
import posixpath
import zipfile
import zlib
from typing import List, Sequence

from idolmedia.core.exceptions import ArchiveOpenError, StorageWriteError
from idolmedia.models.media import ImageDescriptor
from idolmedia.uploads.stager import ObjectStagingUploader, sanitize_filename

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


class ArchiveExpander:
    """Expand a ZIP buffer into staged, ordered images with safety limits."""

    def __init__(
        self,
        stager: ObjectStagingUploader,
        image_extensions: Sequence[str] = DEFAULT_IMAGE_EXTENSIONS,
        max_files: int = 500,
        max_file_size_mb: int = 50,
    ):
        """Initialize expander with limits.

        Args:
            stager: Uploader each accepted entry is staged through
            image_extensions: Lower-case dotted suffixes treated as images
            max_files: Maximum number of images taken from one archive
            max_file_size_mb: Maximum uncompressed size per entry in MB
        """
        self.stager = stager
        self.image_extensions = tuple(ext.lower() for ext in image_extensions)
        self.max_files = max_files
        self.max_file_size_bytes = max_file_size_mb * 1024 * 1024

    async def expand(self, zip_bytes: bytes, key_prefix: str) -> List[ImageDescriptor]:
        """Stage each image entry under ``{key_prefix}/{NNN}_{basename}``.

        Entries are taken in archive order. The sequence number counts
        accepted entries from 1, so an entry that fails to read or upload
        leaves a gap instead of shifting the ones after it. Per-entry
        failures are logged and skipped.

        Returns:
            Descriptors sorted by sequence number

        Raises:
            ArchiveOpenError: If the buffer is not a readable ZIP archive
        """
        try:
            archive = zipfile.ZipFile(io.BytesIO(zip_bytes))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
            logger.error(f"Corrupted ZIP archive: {e}")
            raise ArchiveOpenError(f"Corrupted ZIP archive: {e}") from e

        prefix = key_prefix.strip("/")
        descriptors: List[ImageDescriptor] = []
        sequence = 0

        try:
            with archive:
                for info in archive.infolist():
                    if not self._is_image_entry(info):
                        continue

                    if sequence >= self.max_files:
                        logger.warning(
                            f"Reached max files limit ({self.max_files}), stopping expansion",
                            extra={"key_prefix": prefix},
                        )
                        break
                    sequence += 1

                    if info.flag_bits & 0x1:
                        logger.warning(
                            f"Skipping encrypted entry: {info.filename}",
                            extra={"entry": info.filename},
                        )
                        continue

                    if info.file_size > self.max_file_size_bytes:
                        logger.warning(
                            f"Skipping large entry: {info.filename} ({info.file_size} bytes)",
                            extra={"entry": info.filename, "size": info.file_size},
                        )
                        continue

                    try:
                        data = await asyncio.to_thread(archive.read, info)
                    except (zipfile.BadZipFile, zlib.error, EOFError, OSError, NotImplementedError) as e:
                        logger.warning(
                            f"Skipping unreadable entry {info.filename}: {e}",
                            extra={"entry": info.filename},
                        )
                        continue

                    filename = posixpath.basename(info.filename)
                    key = f"{prefix}/{sequence:03d}_{sanitize_filename(filename)}"
                    content_type = self._detect_mime_type(filename)

                    try:
                        ref = await self.stager.stage(key, data, content_type, filename=filename)
                    except StorageWriteError as e:
                        logger.warning(
                            f"Skipping entry {info.filename}, upload failed: {e}",
                            extra={"entry": info.filename, "key": key},
                        )
                        continue

                    descriptors.append(
                        ImageDescriptor(
                            key=ref.key,
                            order=sequence,
                            filename=filename,
                            size=ref.size,
                            content_type=content_type,
                            uploaded_at=ref.uploaded_at,
                            etag=ref.etag,
                        )
                    )
        except BaseException:
            # Entries staged before the failure never reach the caller
            await self.stager.unstage_many([d.key for d in descriptors])
            raise

        descriptors.sort(key=lambda d: d.order)
        logger.info(
            f"Expanded archive into {len(descriptors)} images",
            extra={"key_prefix": prefix, "accepted": sequence, "staged": len(descriptors)},
        )
        return descriptors

    def _is_image_entry(self, info: zipfile.ZipInfo) -> bool:
        """Skip directories, resource forks, dotfiles and non-images."""
        if info.is_dir():
            return False
        parts = [part for part in info.filename.split("/") if part]
        if not parts:
            return False
        if any(part == "__MACOSX" or part.startswith(".") for part in parts):
            return False
        return posixpath.splitext(parts[-1])[1].lower() in self.image_extensions

    @staticmethod
    def _detect_mime_type(filename: str) -> str:
        mime_type, _ = mimetypes.guess_type(filename)
        return mime_type or "application/octet-stream"

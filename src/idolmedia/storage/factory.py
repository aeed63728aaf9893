"""Storage backend selection."""

from idolmedia.core.config import settings
from idolmedia.storage.base import StorageBackend
from idolmedia.storage.gcs import GCSStorageBackend
from idolmedia.storage.local import LocalStorageBackend
from idolmedia.storage.s3 import S3StorageBackend

_backends: dict[str, StorageBackend] = {}


def get_storage_backend() -> StorageBackend:
    """Return the backend named by STORAGE_BACKEND.

    Raises:
        ValueError: If STORAGE_BACKEND names no known backend
    """
    name = settings.STORAGE_BACKEND
    if name not in _backends:
        if name == "gcs":
            _backends[name] = GCSStorageBackend()
        elif name == "s3":
            _backends[name] = S3StorageBackend()
        elif name == "local":
            _backends[name] = LocalStorageBackend()
        else:
            raise ValueError(f"Unknown storage backend: {name}")
    return _backends[name]

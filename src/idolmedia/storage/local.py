"""Local filesystem storage backend."""

import asyncio
import hashlib
import hmac
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlencode

from idolmedia.core.config import settings
from idolmedia.storage.base import PutResult, StorageBackend


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend.

    Read URLs point at LOCAL_PUBLIC_BASE_URL and carry an HMAC signature
    over the key and expiry, checked by ``verify_signature``.
    """

    def __init__(
        self,
        base_path: Optional[str] = None,
        public_base_url: Optional[str] = None,
        signing_secret: Optional[str] = None,
    ):
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH)
        self.public_base_url = (public_base_url or settings.LOCAL_PUBLIC_BASE_URL).rstrip("/")
        self._signing_secret = (signing_secret or settings.LOCAL_SIGNING_SECRET).encode()

    def path_for(self, key: str) -> Path:
        """Resolve key below base_path, rejecting traversal."""
        base = self.base_path.resolve()
        target = (base / key).resolve()
        if not target.is_relative_to(base) or target == base:
            raise ValueError(f"Unsafe object key: {key}")
        return target

    async def put_object(self, key: str, data: bytes, content_type: str) -> PutResult:
        target_path = self.path_for(key)
        await asyncio.to_thread(self._write, target_path, data)
        return PutResult(etag=hashlib.md5(data).hexdigest())

    @staticmethod
    def _write(target_path: Path, data: bytes) -> None:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        with open(target_path, "wb") as f:
            f.write(data)

    async def delete_object(self, key: str) -> None:
        target_path = self.path_for(key)
        await asyncio.to_thread(target_path.unlink, missing_ok=True)

    async def signed_read_url(self, key: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self._sign(key, expires)})
        return f"{self.object_url(key)}?{query}"

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        """Check a read URL signature and its expiry."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._sign(key, expires), signature)

    def _sign(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode()
        return hmac.new(self._signing_secret, message, hashlib.sha256).hexdigest()

    def object_url(self, key: str) -> str:
        return f"{self.public_base_url}/{quote(key)}"

    def get_backend_name(self) -> str:
        return "local"

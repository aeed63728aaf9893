"""Google Cloud Storage backend."""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from google.api_core.exceptions import NotFound
from google.cloud import storage
from google.oauth2 import service_account

from idolmedia.core.config import settings
from idolmedia.storage.base import PutResult, StorageBackend

logger = logging.getLogger(__name__)


class GCSStorageBackend(StorageBackend):
    """Google Cloud Storage backend."""

    def __init__(self, bucket_name: Optional[str] = None, project_id: Optional[str] = None):
        self._bucket_name = bucket_name
        self._project_id = project_id
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None
        self._signing_kwargs: Optional[Dict[str, Any]] = None

    @property
    def bucket_name(self) -> str:
        return self._bucket_name or settings.GCS_BUCKET_NAME

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            if not self.bucket_name:
                raise ValueError("GCS_BUCKET_NAME not configured")

            self._client = storage.Client(project=self._project_id or settings.GCP_PROJECT_ID)
            self._bucket = self._client.bucket(self.bucket_name)

        return self._bucket

    async def put_object(self, key: str, data: bytes, content_type: str) -> PutResult:
        blob = self._get_bucket().blob(key)
        # Run blocking operation in thread pool
        await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)
        return PutResult(etag=blob.etag or blob.md5_hash)

    async def delete_object(self, key: str) -> None:
        blob = self._get_bucket().blob(key)
        try:
            await asyncio.to_thread(blob.delete)
        except NotFound:
            logger.debug(f"Object already absent: {key}", extra={"key": key})

    async def signed_read_url(self, key: str, ttl_seconds: int) -> str:
        return await asyncio.to_thread(self._generate_signed_url, key, ttl_seconds)

    def _generate_signed_url(self, key: str, ttl_seconds: int) -> str:
        blob = self._get_bucket().blob(key)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=ttl_seconds),
            method="GET",
            **self._get_signing_kwargs(),
        )

    def _get_signing_kwargs(self) -> Dict[str, Any]:
        """Pick signing credentials for V4 URLs.

        Key-file credentials sign locally. Runtime credentials on Cloud Run /
        GCE / GKE have no private key, so signing goes through the IAM
        signBlob API; the service account needs
        roles/iam.serviceAccountTokenCreator on itself.
        """
        if self._signing_kwargs is not None:
            return self._signing_kwargs

        self._get_bucket()
        credentials = self._client._credentials if self._client else None
        if isinstance(credentials, service_account.Credentials):
            self._signing_kwargs = {}
            return self._signing_kwargs

        from google.auth import compute_engine, iam
        from google.auth.transport import requests as auth_requests

        compute_credentials = compute_engine.Credentials()
        auth_request = auth_requests.Request()
        compute_credentials.refresh(auth_request)
        service_account_email = compute_credentials.service_account_email

        signer = iam.Signer(
            request=auth_request,
            credentials=compute_credentials,
            service_account_email=service_account_email,
        )
        # token_uri is required by the constructor; signing itself uses the IAM signer
        signing_credentials = service_account.Credentials(
            signer=signer,
            service_account_email=service_account_email,
            token_uri="https://oauth2.googleapis.com/token",
        )
        self._signing_kwargs = {
            "credentials": signing_credentials,
            "service_account_email": service_account_email,
        }
        return self._signing_kwargs

    def object_url(self, key: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{key}"

    def get_backend_name(self) -> str:
        return "gcs"

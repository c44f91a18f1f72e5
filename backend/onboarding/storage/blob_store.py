"""Blob storage adapter for uploaded onboarding files.

Stored references in the onboarding document may be full public URLs,
URLs under the configured public base, or bare object keys.
extract_blob_key() normalizes all three to an object key.

The production adapter talks to Google Cloud Storage. The client is
blocking, so every call is pushed onto the threadpool.
"""

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Protocol
from urllib.parse import quote, unquote, urlparse

from google.cloud import storage
from google.oauth2 import service_account
from starlette.concurrency import run_in_threadpool

from onboarding.config import settings

logger = logging.getLogger(__name__)

GCS_HOSTS = ("storage.googleapis.com", "storage.cloud.google.com")


class BlobStoreError(Exception):
    """A blob store call failed."""


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str: ...

    async def delete(self, key: str) -> None: ...

    async def sign(self, key: str, ttl_seconds: int) -> str: ...

    def proxy_url(self, key: str) -> str: ...


def extract_blob_key(ref: str | None) -> str | None:
    """Return the object key behind a stored reference, or None."""
    if not ref or not isinstance(ref, str):
        return None
    ref = ref.strip()
    if not ref:
        return None

    base = settings.blob_public_base_url.rstrip("/")
    if base and ref.startswith(base + "/"):
        return unquote(ref[len(base):].split("?", 1)[0]).lstrip("/") or None

    if ref.startswith(("http://", "https://")):
        parsed = urlparse(ref)
        path = unquote(parsed.path).lstrip("/")
        # Path-style GCS URLs (Blob.public_url) carry the bucket as first segment
        if parsed.netloc in GCS_HOSTS:
            _, _, path = path.partition("/")
        return path or None

    if "://" not in ref:
        return ref.lstrip("/") or None
    return None


def build_proxy_url(key: str) -> str:
    """Non-expiring app-relative URL that streams a private blob."""
    return f"{settings.media_proxy_path}?key={quote(key, safe='')}"


class GCSBlobStore:
    """BlobStore backed by a single GCS bucket."""

    def __init__(self, bucket_name: str, credentials_file: str = ""):
        if credentials_file:
            creds = service_account.Credentials.from_service_account_file(credentials_file)
            self.client = storage.Client(credentials=creds, project=creds.project_id)
        else:
            self.client = storage.Client()
        self.bucket = self.client.bucket(bucket_name)

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        blob = self.bucket.blob(key)
        try:
            await run_in_threadpool(blob.upload_from_string, data, content_type=content_type)
        except Exception as e:
            raise BlobStoreError(f"Upload failed for {key}: {e}") from e
        return blob.public_url

    async def delete(self, key: str) -> None:
        blob = self.bucket.blob(key)
        try:
            await run_in_threadpool(blob.delete)
        except Exception as e:
            raise BlobStoreError(f"Delete failed for {key}: {e}") from e

    async def sign(self, key: str, ttl_seconds: int) -> str:
        blob = self.bucket.blob(key)
        try:
            return await run_in_threadpool(
                blob.generate_signed_url,
                version="v4",
                expiration=timedelta(seconds=ttl_seconds),
                method="GET",
            )
        except Exception as e:
            raise BlobStoreError(f"Signing failed for {key}: {e}") from e

    def proxy_url(self, key: str) -> str:
        return build_proxy_url(key)


async def delete_blobs(blob_store: BlobStore, keys: list[str]) -> list[str]:
    """Delete each key; return the ones that failed.

    A failed delete leaves an orphaned object behind but never blocks the
    row change that made it orphaned.
    """
    failed = []
    for key in keys:
        try:
            await blob_store.delete(key)
            logger.info(f"Deleted blob {key}")
        except BlobStoreError as e:
            logger.warning(f"Blob delete failed, object left orphaned: {e}", extra={"key": key})
            failed.append(key)
    return failed


@lru_cache
def get_blob_store() -> BlobStore:
    """FastAPI dependency: process-wide GCS adapter."""
    return GCSBlobStore(settings.blob_bucket, settings.blob_credentials_file)

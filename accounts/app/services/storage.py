"""Object storage for profile pictures, backed by Google Cloud Storage.

Storage layout:
    gs://{bucket}/profile-pictures/{user_id}/{epoch_ms}-{original_filename}

Credentials:
    GCS_KEY_FILE service-account JSON if set,
    otherwise Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS).
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from accounts.app.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """An object store call failed."""


@dataclass
class StoredObject:
    key: str
    url: str
    size_bytes: int


def build_object_key(user_id: str, filename: str, prefix: str | None = None, now_ms: int | None = None) -> str:
    """Build a per-user object key with a timestamp disambiguator.

    Example: ("u1", "me.png") → "profile-pictures/u1/1700000000000-me.png"
    """
    prefix = settings.gcs_prefix if prefix is None else prefix
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    safe_name = Path(filename).name.replace(" ", "_") or "upload"
    return f"{prefix}{user_id}/{stamp}-{safe_name}"


# ── Abstract interface ────────────────────────────────────────────────────────

class ObjectStore(ABC):
    """Abstract interface for profile picture storage."""

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> StoredObject:
        """Store bytes under key and return the stored location."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the object at key."""
        ...


# ── GCS implementation ────────────────────────────────────────────────────────

class GCSObjectStore(ObjectStore):
    """Google Cloud Storage implementation of ObjectStore.

    The google-cloud-storage client is blocking, so each call runs in the
    default executor.
    """

    def __init__(self, bucket: str | None = None, key_file: Optional[str] = None, client=None) -> None:
        self._bucket_name = bucket or settings.gcs_bucket
        self._client = client or self._build_client(key_file or settings.gcs_key_file)
        self._bucket = self._client.bucket(self._bucket_name)
        logger.info("GCSObjectStore initialized: bucket=%s", self._bucket_name)

    def _build_client(self, key_file: Optional[str]):
        """Build a GCS client using the best available credentials."""
        from google.cloud import storage
        from google.oauth2 import service_account

        if key_file and Path(key_file).exists():
            logger.info("GCSObjectStore: using service account key at %s", key_file)
            creds = service_account.Credentials.from_service_account_file(
                key_file,
                scopes=["https://www.googleapis.com/auth/cloud-platform"],
            )
            return storage.Client(credentials=creds, project=creds.project_id)

        logger.info("GCSObjectStore: no key file found, using Application Default Credentials")
        return storage.Client()

    def _upload_sync(self, key: str, data: bytes, content_type: str) -> StoredObject:
        blob = self._bucket.blob(key)
        blob.upload_from_string(data, content_type=content_type)
        return StoredObject(key=key, url=blob.public_url, size_bytes=len(data))

    def _delete_sync(self, key: str) -> None:
        self._bucket.blob(key).delete()

    async def upload(self, key: str, data: bytes, content_type: str) -> StoredObject:
        """Upload bytes to GCS.

        Raises:
            StorageError: If the upload fails.
        """
        logger.info("GCS upload: %d bytes → gs://%s/%s", len(data), self._bucket_name, key)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, functools.partial(self._upload_sync, key, data, content_type)
            )
        except Exception as exc:
            raise StorageError(f"GCS upload failed for {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        """Delete an object from GCS.

        Raises:
            StorageError: If the delete fails.
        """
        logger.info("GCS delete: gs://%s/%s", self._bucket_name, key)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, functools.partial(self._delete_sync, key))
        except Exception as exc:
            raise StorageError(f"GCS delete failed for {key}: {exc}") from exc


_store: ObjectStore | None = None


def get_object_store() -> ObjectStore:
    """FastAPI dependency: the process-wide object store, built on first use."""
    global _store
    if _store is None:
        _store = GCSObjectStore()
    return _store

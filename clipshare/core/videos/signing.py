"""
Signed URL issuance.

Wraps the object storage client with the object naming scheme and the
degradation policy: a failed signature becomes an empty URL (or no upload
slot) instead of an exception, so one broken thumbnail never fails a page.
"""

import logging
from typing import Optional, Protocol

from .models import SignedUpload

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TTL_SECONDS = 60 * 60
DEFAULT_UPLOAD_TTL_SECONDS = 2 * 60 * 60


class ObjectStorage(Protocol):
    """
    Interface for the storage provider's signing primitives.

    Implementations raise on provider failure; SignedUrlIssuer decides
    what a failure means for the caller.
    """

    async def create_signed_download_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int,
    ) -> str:
        ...

    async def create_signed_upload_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int,
    ) -> SignedUpload:
        ...

    async def remove(self, bucket: str, paths: list[str]) -> list[str]:
        """Delete objects; returns the paths that were removed."""
        ...


def video_object_path(owner_id: str, video_id: str) -> str:
    return f"{owner_id}/{video_id}"


def thumbnail_object_path(owner_id: str, video_id: str) -> str:
    return f"{owner_id}/{video_id}-thumbnail"


class SignedUrlIssuer:
    """Mints time-bounded URLs for video and thumbnail objects."""

    def __init__(
        self,
        storage: ObjectStorage,
        upload_ttl_seconds: int = DEFAULT_UPLOAD_TTL_SECONDS,
    ) -> None:
        self._storage = storage
        self._upload_ttl_seconds = upload_ttl_seconds

    async def issue_download_url(
        self,
        bucket: str,
        path: str,
        ttl_seconds: int = DEFAULT_DOWNLOAD_TTL_SECONDS,
    ) -> str:
        """Signed GET URL, or "" when the provider fails."""
        try:
            return await self._storage.create_signed_download_url(bucket, path, ttl_seconds) or ""
        except Exception as e:
            logger.warning(
                "Download URL unavailable",
                extra={"bucket": bucket, "path": path, "error": str(e)}
            )
            return ""

    async def issue_upload_url(self, bucket: str, path: str) -> Optional[SignedUpload]:
        """Signed upload slot, or None when the provider fails."""
        try:
            return await self._storage.create_signed_upload_url(
                bucket, path, self._upload_ttl_seconds
            )
        except Exception as e:
            logger.warning(
                "Upload URL unavailable",
                extra={"bucket": bucket, "path": path, "error": str(e)}
            )
            return None

    async def remove_objects(self, bucket: str, paths: list[str]) -> list[str]:
        """Best-effort delete. Returns removed paths, [] on provider failure."""
        try:
            return await self._storage.remove(bucket, paths) or []
        except Exception as e:
            logger.warning(
                "Storage cleanup failed, objects orphaned",
                extra={"bucket": bucket, "paths": paths, "error": str(e)}
            )
            return []

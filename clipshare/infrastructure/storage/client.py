"""
Object storage client for video and thumbnail objects.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
This client only signs URLs and deletes objects: video bytes travel
directly between the browser and the bucket, never through the API.

Mock mode keeps a registry of issued slots in memory and returns mock://
URIs, enabling API testing without provisioning object storage.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlparse

from ...core.videos.models import SignedUpload
from ...core.videos.signing import ObjectStorage

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region


class R2StorageClient:
    """
    Cloudflare R2 object storage client.

    Uses boto3 because R2 is S3-compatible. Presigning is a local
    computation but delete_objects is a network call, so every boto3 call
    runs in a worker thread to keep the event loop free.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        boto3 is imported here (not at module level) so mock mode doesn't
        need it installed.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for R2 storage. Install with: pip install boto3"
            )

        self._config = config

        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized R2 storage client",
            extra={"endpoint": config.endpoint_url}
        )

    async def create_signed_download_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Presigned GET for one object."""
        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                'get_object',
                Params={'Bucket': bucket, 'Key': path},
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned download URL",
                extra={"bucket": bucket, "storage_path": path, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    async def create_signed_upload_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 7200,
    ) -> SignedUpload:
        """
        Presigned PUT for one object.

        The token is the request signature carried in the URL. Clients send
        it back alongside the object key when confirming an upload.
        """
        try:
            url = await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                'put_object',
                Params={'Bucket': bucket, 'Key': path},
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned upload URL",
                extra={"bucket": bucket, "storage_path": path, "error": str(e)}
            )
            raise StorageError(f"Presigned upload URL generation failed: {e}")

        return SignedUpload(url=url, token=_signature_from_url(url))

    async def remove(self, bucket: str, paths: list[str]) -> list[str]:
        """Delete objects in one batch. Returns the keys R2 reports deleted."""
        if not paths:
            return []

        try:
            response = await asyncio.to_thread(
                self._s3_client.delete_objects,
                Bucket=bucket,
                Delete={'Objects': [{'Key': path} for path in paths]},
            )
        except Exception as e:
            logger.error(
                "Failed to delete objects",
                extra={"bucket": bucket, "paths": paths, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")

        for error in response.get('Errors', []):
            logger.warning(
                "Object not deleted",
                extra={"bucket": bucket, "key": error.get('Key'), "error": error.get('Message')}
            )

        deleted = [obj['Key'] for obj in response.get('Deleted', [])]
        logger.info(
            "Deleted objects",
            extra={"bucket": bucket, "count": len(deleted)}
        )
        return deleted


def _signature_from_url(url: str) -> str:
    query = parse_qs(urlparse(url).query)
    values = query.get('X-Amz-Signature') or query.get('Signature') or [""]
    return values[0]


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects are never actually written. Issued upload slots are recorded
    so that remove() can report what it "deleted", and tests can mark
    objects present with put_object().
    """

    def __init__(self) -> None:
        # {bucket: {path: token}}
        self._objects: dict[str, dict[str, str]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def create_signed_download_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        return f"mock://storage/{bucket}/{path}?expires_in={expiry_seconds}"

    async def create_signed_upload_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 7200,
    ) -> SignedUpload:
        token = secrets.token_urlsafe(16)
        self._objects.setdefault(bucket, {})[path] = token

        logger.debug(
            "Issued mock upload slot",
            extra={"bucket": bucket, "storage_path": path}
        )

        return SignedUpload(
            url=f"mock://storage/{bucket}/{path}?upload=1&token={token}",
            token=token,
        )

    async def remove(self, bucket: str, paths: list[str]) -> list[str]:
        stored = self._objects.get(bucket, {})
        removed = [path for path in paths if stored.pop(path, None) is not None]

        logger.debug(
            "Removed objects from mock storage",
            extra={"bucket": bucket, "count": len(removed)}
        )

        return removed

    # Helper methods for testing
    def put_object(self, bucket: str, path: str) -> None:
        self._objects.setdefault(bucket, {})[path] = "seeded"

    def has_object(self, bucket: str, path: str) -> bool:
        return path in self._objects.get(bucket, {})


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStorage:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        ObjectStorage implementation (R2 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config)

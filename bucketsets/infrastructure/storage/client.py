"""
Object storage clients for storage sets.

Supports Cloudflare R2, AWS S3, MinIO and anything else that speaks the
S3 list/delete API, with a mock mode for local development.

Mock mode keeps objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ...core.storage.lister import ObjectStore
from ...core.storage.models import (
    BackendDescriptor,
    DeleteError,
    DeleteOutcome,
    ObjectPage,
    RawObject,
)
from ...core.storage.urls import normalize

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for one R2/S3-compatible bucket.

    Built from a ready BackendDescriptor so the boto3 client never sees
    the loosely structured environment directly.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region
    force_path_style: bool = False
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_descriptor(
        cls,
        descriptor: BackendDescriptor,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "StorageConfig":
        if not descriptor.is_ready or descriptor.credentials is None:
            raise ValueError(f"Storage set {descriptor.id} is not ready: {descriptor.error}")
        return cls(
            access_key_id=descriptor.credentials.access_key_id,
            secret_access_key=descriptor.credentials.secret_access_key,
            bucket_name=descriptor.bucket,
            endpoint_url=normalize(descriptor.endpoint),
            region=descriptor.region,
            force_path_style=descriptor.force_path_style,
            page_size=page_size,
        )


class S3StorageClient:
    """
    S3-compatible storage client for one bucket.

    Uses boto3 because R2 is S3-compatible. The boto3 client is built
    once and reused for every request against this bucket.

    boto3 is synchronous, so each call runs in a worker thread. Every
    list page and every delete batch is one await point, which lets
    several buckets be listed at the same time.
    """

    def __init__(self, config: StorageConfig) -> None:
        import boto3
        from botocore.config import Config

        self._config = config

        # R2 requires v4 signatures
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path' if config.force_path_style else 'auto'},
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
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def list_page(self, continuation_token: Optional[str] = None) -> ObjectPage:
        """Fetch one page of ListObjectsV2."""
        params = {
            'Bucket': self._config.bucket_name,
            'MaxKeys': self._config.page_size,
        }
        if continuation_token:
            params['ContinuationToken'] = continuation_token

        try:
            response = await asyncio.to_thread(self._s3_client.list_objects_v2, **params)
        except Exception as e:
            logger.error(
                "Failed to list objects",
                extra={"bucket": self._config.bucket_name, "error": str(e)}
            )
            raise StorageError(f"List failed: {e}") from e

        entries = [
            RawObject(
                key=str(obj['Key']),
                size=int(obj.get('Size') or 0),
                last_modified=obj.get('LastModified'),
            )
            for obj in response.get('Contents', [])
        ]

        return ObjectPage(
            entries=entries,
            next_token=response.get('NextContinuationToken'),
            is_truncated=bool(response.get('IsTruncated')),
        )

    async def delete_objects(self, keys: Sequence[str]) -> DeleteOutcome:
        """
        Delete a batch of keys with one DeleteObjects call.

        Per-key failures come back in the outcome; a failure of the
        call itself raises StorageError.
        """
        if not keys:
            return DeleteOutcome()

        try:
            response = await asyncio.to_thread(
                self._s3_client.delete_objects,
                Bucket=self._config.bucket_name,
                Delete={'Objects': [{'Key': key} for key in keys]},
            )
        except Exception as e:
            logger.error(
                "Failed to delete objects",
                extra={
                    "bucket": self._config.bucket_name,
                    "count": len(keys),
                    "error": str(e),
                }
            )
            raise StorageError(f"Delete failed: {e}") from e

        outcome = DeleteOutcome(
            deleted=[str(d['Key']) for d in response.get('Deleted', [])],
            errors=[
                DeleteError(
                    key=e.get('Key'),
                    code=str(e.get('Code', '')),
                    message=str(e.get('Message', '')),
                )
                for e in response.get('Errors', [])
            ],
        )

        logger.debug(
            "Deleted objects",
            extra={
                "bucket": self._config.bucket_name,
                "deleted": len(outcome.deleted),
                "errors": len(outcome.errors),
            }
        )

        return outcome


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory bucket for local development and tests.

    Objects live in a dictionary keyed by object key. Listing pages
    through them in key order like S3 does, using the next start index
    as the continuation token.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self, bucket_name: str = "mock", page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._bucket_name = bucket_name
        self._page_size = max(page_size, 1)
        self._objects: dict[str, RawObject] = {}
        self.list_calls = 0
        self.delete_calls: list[list[str]] = []
        logger.info(
            "Initialized mock storage client (in-memory)",
            extra={"bucket": bucket_name},
        )

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    @property
    def keys(self) -> list[str]:
        return sorted(self._objects)

    def put(
        self,
        key: str,
        size: int = 0,
        last_modified: Optional[datetime] = None,
    ) -> None:
        """Store an object's metadata. An undated object keeps last_modified=None."""
        self._objects[key] = RawObject(key=key, size=size, last_modified=last_modified)

    async def list_page(self, continuation_token: Optional[str] = None) -> ObjectPage:
        self.list_calls += 1

        start = int(continuation_token) if continuation_token else 0
        keys = sorted(self._objects)
        end = start + self._page_size
        truncated = end < len(keys)

        return ObjectPage(
            entries=[self._objects[key] for key in keys[start:end]],
            next_token=str(end) if truncated else None,
            is_truncated=truncated,
        )

    async def delete_objects(self, keys: Sequence[str]) -> DeleteOutcome:
        self.delete_calls.append(list(keys))

        deleted = []
        for key in keys:
            # S3 reports missing keys as deleted
            self._objects.pop(key, None)
            deleted.append(key)

        logger.debug(
            "Deleted objects from mock storage",
            extra={"bucket": self._bucket_name, "count": len(deleted)}
        )

        return DeleteOutcome(deleted=deleted)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    descriptor: BackendDescriptor,
    mock_mode: bool = False,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ObjectStore:
    """
    Create the storage client for one ready set.

    Args:
        descriptor: A ready backend descriptor
        mock_mode: If True, return an in-memory client
        page_size: Keys requested per list call

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient(bucket_name=descriptor.bucket or descriptor.id, page_size=page_size)

    return S3StorageClient(StorageConfig.from_descriptor(descriptor, page_size=page_size))

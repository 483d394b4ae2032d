"""
Shared fixtures and fakes.

Tests run against in-memory stores: no boto3 client, no network and no
dependency on the process environment.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from bucketsets.core.storage.lister import Backend
from bucketsets.core.storage.models import (
    BackendDescriptor,
    Credentials,
    DeleteOutcome,
    Misconfigured,
    ObjectPage,
    Ready,
)
from bucketsets.infrastructure.storage.client import MockStorageClient

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_descriptor(
    backend_id: str = "R2",
    ready: bool = True,
    public_url_base: str = "https://cdn.example.com",
    bucket: Optional[str] = "photos",
) -> BackendDescriptor:
    prefix, _, suffix = backend_id.partition("_")
    if ready:
        return BackendDescriptor(
            id=backend_id,
            prefix=prefix,
            suffix=suffix,
            status=Ready(),
            bucket=bucket,
            endpoint="https://account.r2.cloudflarestorage.com",
            public_url_base=public_url_base,
            credentials=Credentials(access_key_id="key", secret_access_key="secret"),
        )
    return BackendDescriptor(
        id=backend_id,
        prefix=prefix,
        suffix=suffix,
        status=Misconfigured(reason="Missing required vars (SECRET_ACCESS_KEY)", fields_seen=("BUCKET",)),
        bucket=bucket,
    )


def make_backend(backend_id: str = "R2", store=None, **kwargs) -> Backend:
    descriptor = make_descriptor(backend_id, **kwargs)
    if descriptor.is_ready and store is None:
        store = MockStorageClient(bucket_name=descriptor.bucket)
    return Backend(descriptor=descriptor, store=store)


class FailingListStore(MockStorageClient):
    """Listing fails on the given page (1-based); deletes never happen."""

    def __init__(self, fail_on_page: int = 1, message: str = "AccessDenied", **kwargs) -> None:
        super().__init__(**kwargs)
        self._fail_on_page = fail_on_page
        self._message = message

    async def list_page(self, continuation_token: Optional[str] = None) -> ObjectPage:
        if self.list_calls + 1 >= self._fail_on_page:
            self.list_calls += 1
            raise ConnectionError(self._message)
        return await super().list_page(continuation_token)


class FailingDeleteStore(MockStorageClient):
    """The listed delete calls (1-based) raise instead of deleting."""

    def __init__(self, failing_calls: Sequence[int] = (1,), **kwargs) -> None:
        super().__init__(**kwargs)
        self._failing_calls = set(failing_calls)

    async def delete_objects(self, keys: Sequence[str]) -> DeleteOutcome:
        if len(self.delete_calls) + 1 in self._failing_calls:
            self.delete_calls.append(list(keys))
            raise TimeoutError("SlowDown")
        return await super().delete_objects(keys)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def days_ago(now):
    def _days_ago(days: float) -> datetime:
        return now - timedelta(days=days)
    return _days_ago

"""
Full listing of a single backend.

A backend may hold far more objects than one list call returns, so the
listing is a lazy sequence of pages that follows the backend's
continuation token until the backend says there is nothing left.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, Sequence

from .models import BackendDescriptor, DeleteOutcome, ObjectPage, ObjectRecord
from .urls import public_url


class PaginationError(Exception):
    """Raised when a truncated page does not advance the continuation token."""
    pass


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStore(Protocol):
    """
    Interface for one bucket on an S3-compatible backend.

    Listing and pruning only need these two calls, so tests can pass an
    in-memory store and production passes a boto3-backed one.
    """

    async def list_page(self, continuation_token: Optional[str] = None) -> ObjectPage:
        """Fetch one page of the bucket listing."""
        ...

    async def delete_objects(self, keys: Sequence[str]) -> DeleteOutcome:
        """Delete up to one batch of keys in a single call."""
        ...


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------

async def iter_pages(store: ObjectStore) -> AsyncIterator[ObjectPage]:
    """
    Yield every page of the listing, first to last.

    Each page is one backend call with no retry: a failure ends the
    sequence with the exception. Calling again starts over from the first
    page.
    """
    token: Optional[str] = None
    while True:
        page = await store.list_page(token)
        yield page

        if not page.is_truncated:
            return
        if not page.next_token or page.next_token == token:
            raise PaginationError(
                "Listing is truncated but the continuation token did not advance"
            )
        token = page.next_token


async def list_all(descriptor: BackendDescriptor, store: ObjectStore) -> list[ObjectRecord]:
    """List every object in the backend's bucket as ObjectRecords."""
    records: list[ObjectRecord] = []
    async for page in iter_pages(store):
        for entry in page.entries:
            records.append(
                ObjectRecord(
                    key=entry.key,
                    size=max(entry.size or 0, 0),
                    last_modified=entry.last_modified,
                    url=public_url(descriptor, entry.key),
                    backend_id=descriptor.id,
                    bucket=descriptor.bucket,
                    account_id=descriptor.account_id,
                )
            )
    return records


# ---------------------------------------------------------------------------
# Backend handle
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Backend:
    """
    A descriptor paired with the store that serves it.

    Misconfigured descriptors carry no store. Each ready descriptor owns
    exactly one store for the life of the process.
    """
    descriptor: BackendDescriptor
    store: Optional[ObjectStore] = None

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def is_ready(self) -> bool:
        return self.descriptor.is_ready and self.store is not None

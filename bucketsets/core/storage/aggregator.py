"""
Listing across every configured set.

Each ready backend is listed concurrently. A failure in one backend is
turned into a BackendError entry and never drops the records of another.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence, Union

from .lister import Backend, list_all
from .models import (
    BackendError,
    BackendNotFoundError,
    BackendUnavailableError,
    Listing,
    ObjectRecord,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _sort_key(record: ObjectRecord) -> tuple[float, str]:
    moment = record.last_modified or _EPOCH
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (-moment.timestamp(), record.key)


def sort_records(records: Iterable[ObjectRecord]) -> list[ObjectRecord]:
    """Newest first; equal timestamps by key; undated objects last."""
    return sorted(records, key=_sort_key)


def find_backend(backends: Iterable[Backend], backend_id: str) -> Backend:
    for backend in backends:
        if backend.id == backend_id:
            return backend
    raise BackendNotFoundError(backend_id)


async def _list_one(backend: Backend) -> Union[list[ObjectRecord], BackendError]:
    descriptor = backend.descriptor

    if not backend.is_ready:
        return BackendError(
            backend_id=descriptor.id,
            message=descriptor.error or "No storage client configured",
            bucket=descriptor.bucket,
        )

    try:
        records = await list_all(descriptor, backend.store)
    except Exception as e:
        logger.error(
            "Failed to list storage set",
            extra={"set": descriptor.id, "bucket": descriptor.bucket, "error": str(e)},
        )
        return BackendError(backend_id=descriptor.id, message=str(e), bucket=descriptor.bucket)

    logger.debug(
        "Listed storage set",
        extra={"set": descriptor.id, "count": len(records)},
    )
    return records


async def list_across_backends(backends: Sequence[Backend]) -> Listing:
    """
    List every set and merge the results.

    Misconfigured sets short-circuit to an error without a network call.
    Errors come back in `Listing.errors`, in backend order; records come
    back merged and sorted in `Listing.records`.
    """
    outcomes = await asyncio.gather(*(_list_one(backend) for backend in backends))

    listing = Listing()
    merged: list[ObjectRecord] = []
    for outcome in outcomes:
        if isinstance(outcome, BackendError):
            listing.errors.append(outcome)
        else:
            merged.extend(outcome)

    listing.records = sort_records(merged)
    return listing


async def list_backend(backends: Sequence[Backend], backend_id: str) -> list[ObjectRecord]:
    """
    List a single set.

    Raises:
        BackendNotFoundError: No set has this id.
        BackendUnavailableError: The set is misconfigured or listing failed.
    """
    backend = find_backend(backends, backend_id)

    outcome = await _list_one(backend)
    if isinstance(outcome, BackendError):
        raise BackendUnavailableError(
            backend_id,
            outcome.message,
            misconfigured=not backend.is_ready,
        )

    return sort_records(outcome)

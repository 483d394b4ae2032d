"""
Age-based pruning of image objects.

A sweep lists the whole bucket, picks image objects older than the
cutoff and deletes them in bulk batches. Batches run one after another;
a failed batch is recorded and the sweep moves on, so a partially
unavailable backend still gets as much cleaned up as possible.
"""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional, Sequence, TypeVar, Union

from .aggregator import find_backend
from .lister import Backend, list_all
from .models import (
    BackendError,
    BackendUnavailableError,
    DeleteError,
    ObjectRecord,
    PruneResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

IMAGE_EXTENSIONS: tuple[str, ...] = ("png", "jpg", "jpeg", "gif", "webp", "bmp")

# S3 DeleteObjects accepts at most 1000 keys per request
MAX_DELETE_BATCH = 1000
# Dry runs echo at most this many keys
MAX_SAMPLE_LIMIT = 1000

_IMAGE_KEY_RE = re.compile(
    r"\.(?:" + "|".join(IMAGE_EXTENSIONS) + r")(?:$|\?)",
    re.IGNORECASE,
)


def is_image_key(key: Optional[str]) -> bool:
    """True for keys ending in an image extension, query string ignored."""
    return bool(_IMAGE_KEY_RE.search(str(key or "")))


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def select_expired(records: Iterable[ObjectRecord], cutoff: datetime) -> list[str]:
    """
    Keys of image objects modified strictly before `cutoff`.

    Objects without a modification time are never selected since their
    age cannot be proven.
    """
    cutoff = _as_utc(cutoff)
    return [
        record.key
        for record in records
        if record.key
        and is_image_key(record.key)
        and record.last_modified is not None
        and _as_utc(record.last_modified) < cutoff
    ]


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def prune(
    backend: Backend,
    max_age_seconds: int,
    dry_run: bool = False,
    now: Optional[datetime] = None,
    batch_size: int = MAX_DELETE_BATCH,
    sample_limit: int = MAX_SAMPLE_LIMIT,
) -> PruneResult:
    """
    Delete image objects older than `max_age_seconds` from one set.

    Args:
        backend: The set to sweep.
        max_age_seconds: Objects modified before now minus this are stale.
        dry_run: Report what would be deleted without deleting.
        now: Reference time, defaults to the current UTC time.
        batch_size: Keys per bulk delete, capped at MAX_DELETE_BATCH.
        sample_limit: Dry runs report at most this many keys, capped at
            MAX_SAMPLE_LIMIT. The count is always exact.

    Raises:
        ValueError: `max_age_seconds` is negative.
        BackendUnavailableError: The set is misconfigured or could not be
            listed. Nothing is deleted in that case.
    """
    descriptor = backend.descriptor

    if max_age_seconds < 0:
        raise ValueError("max_age_seconds cannot be negative")

    if not backend.is_ready:
        raise BackendUnavailableError(
            descriptor.id,
            descriptor.error or "No storage client configured",
            misconfigured=True,
        )

    batch_size = min(max(batch_size, 1), MAX_DELETE_BATCH)
    sample_limit = min(max(sample_limit, 0), MAX_SAMPLE_LIMIT)
    cutoff = _as_utc(now or datetime.now(timezone.utc)) - timedelta(seconds=max_age_seconds)

    try:
        records = await list_all(descriptor, backend.store)
    except Exception as e:
        logger.error(
            "Prune aborted, listing failed",
            extra={"set": descriptor.id, "error": str(e)},
        )
        raise BackendUnavailableError(descriptor.id, str(e)) from e

    expired = select_expired(records, cutoff)
    result = PruneResult(backend_id=descriptor.id, dry_run=dry_run)

    if not expired:
        return result

    if dry_run:
        result.deleted_count = len(expired)
        result.deleted_keys = expired[:sample_limit]
        logger.info(
            "Dry-run prune",
            extra={"set": descriptor.id, "would_delete": len(expired)},
        )
        return result

    for batch in chunked(expired, batch_size):
        try:
            outcome = await backend.store.delete_objects(batch)
        except Exception as e:
            logger.error(
                "Delete batch failed",
                extra={"set": descriptor.id, "batch_size": len(batch), "error": str(e)},
            )
            result.errors.append(DeleteError(key=None, code="BatchFailed", message=str(e)))
            continue

        result.deleted_keys.extend(outcome.deleted)
        result.errors.extend(outcome.errors)

    result.deleted_count = len(result.deleted_keys)

    logger.info(
        "Pruned storage set",
        extra={
            "set": descriptor.id,
            "selected": len(expired),
            "deleted": result.deleted_count,
            "errors": len(result.errors),
        },
    )
    return result


async def _prune_one(backend: Backend, **kwargs) -> Union[PruneResult, BackendError]:
    try:
        return await prune(backend, **kwargs)
    except BackendUnavailableError as e:
        return BackendError(backend_id=backend.id, message=e.message, bucket=backend.descriptor.bucket)


async def prune_all(
    backends: Sequence[Backend],
    max_age_seconds: int,
    dry_run: bool = False,
    now: Optional[datetime] = None,
    batch_size: int = MAX_DELETE_BATCH,
    sample_limit: int = MAX_SAMPLE_LIMIT,
) -> list[Union[PruneResult, BackendError]]:
    """
    Sweep every set concurrently.

    Results keep backend order. A set that is misconfigured or cannot be
    listed yields a BackendError and does not affect the others.
    """
    if max_age_seconds < 0:
        raise ValueError("max_age_seconds cannot be negative")

    # Same cutoff for every set
    now = now or datetime.now(timezone.utc)

    return list(
        await asyncio.gather(
            *(
                _prune_one(
                    backend,
                    max_age_seconds=max_age_seconds,
                    dry_run=dry_run,
                    now=now,
                    batch_size=batch_size,
                    sample_limit=sample_limit,
                )
                for backend in backends
            )
        )
    )


async def prune_backend(backends: Sequence[Backend], backend_id: str, **kwargs) -> PruneResult:
    """Sweep one set by id. Raises BackendNotFoundError for unknown ids."""
    return await prune(find_backend(backends, backend_id), **kwargs)

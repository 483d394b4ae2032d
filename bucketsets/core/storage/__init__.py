"""
Multi-set storage logic.

Contains backend discovery, URL building, listing, aggregation and
pruning.
"""

from .aggregator import list_across_backends, list_backend, sort_records
from .lister import Backend, ObjectStore, PaginationError, iter_pages, list_all
from .models import (
    BackendDescriptor,
    BackendError,
    BackendNotFoundError,
    BackendUnavailableError,
    Credentials,
    DeleteError,
    DeleteOutcome,
    Listing,
    Misconfigured,
    ObjectPage,
    ObjectRecord,
    PruneResult,
    RawObject,
    Ready,
)
from .pruner import is_image_key, prune, prune_all, prune_backend, select_expired
from .resolver import ResolverDefaults, resolve_backends
from .urls import join, normalize, public_url

__all__ = [
    "Backend",
    "BackendDescriptor",
    "BackendError",
    "BackendNotFoundError",
    "BackendUnavailableError",
    "Credentials",
    "DeleteError",
    "DeleteOutcome",
    "Listing",
    "Misconfigured",
    "ObjectPage",
    "ObjectRecord",
    "ObjectStore",
    "PaginationError",
    "PruneResult",
    "RawObject",
    "Ready",
    "ResolverDefaults",
    "is_image_key",
    "iter_pages",
    "join",
    "list_across_backends",
    "list_all",
    "list_backend",
    "normalize",
    "prune",
    "prune_all",
    "prune_backend",
    "public_url",
    "resolve_backends",
    "select_expired",
    "sort_records",
]

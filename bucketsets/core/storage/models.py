"""
Domain models for storage sets.

A "set" is one independently configured storage backend: a bucket plus
the credentials and endpoint needed to reach it. These models have no
dependency on boto3, FastAPI or the environment. They describe what a
backend is and what listing or pruning it produces, not how.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union


class BackendNotFoundError(LookupError):
    """Raised when a caller asks for a set id that was never configured."""

    def __init__(self, backend_id: str) -> None:
        super().__init__(f"set not found: {backend_id}")
        self.backend_id = backend_id


class BackendUnavailableError(Exception):
    """
    Raised when a known set cannot serve a request.

    Either the set is misconfigured or the backend call failed. The
    message is safe to hand back to API clients.
    """

    def __init__(self, backend_id: str, message: str, misconfigured: bool = False) -> None:
        super().__init__(message)
        self.backend_id = backend_id
        self.message = message
        self.misconfigured = misconfigured


# ---------------------------------------------------------------------------
# Backend descriptors
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Credentials:
    """Access key pair for one backend. The secret is kept out of repr."""
    access_key_id: str
    secret_access_key: str = field(repr=False)


@dataclass(frozen=True)
class Ready:
    """All required properties were found for the set."""


@dataclass(frozen=True)
class Misconfigured:
    """
    Required properties are missing.

    `fields_seen` lists the property names observed for the group so
    operators can spot a typo. Values are never kept here.
    """
    reason: str
    fields_seen: tuple[str, ...] = ()


BackendStatus = Union[Ready, Misconfigured]


@dataclass(frozen=True)
class BackendDescriptor:
    """
    One configured storage target.

    Built once at start-up from the environment and never changed.
    Misconfigured descriptors are kept so their error stays visible in
    listing and prune responses.
    """
    id: str
    prefix: str
    suffix: str
    status: BackendStatus
    bucket: Optional[str] = None
    endpoint: Optional[str] = None
    region: str = "auto"
    public_url_base: str = ""
    credentials: Optional[Credentials] = None
    frontend_origin: str = "*"
    account_id: Optional[str] = None
    force_path_style: bool = False

    @property
    def is_ready(self) -> bool:
        return isinstance(self.status, Ready)

    @property
    def error(self) -> Optional[str]:
        """Misconfiguration reason, or None for a ready backend."""
        if isinstance(self.status, Misconfigured):
            return self.status.reason
        return None


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawObject:
    """A listing entry as reported by the backend, before URL building."""
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectPage:
    """One page of a paged listing call."""
    entries: list[RawObject]
    next_token: Optional[str] = None
    is_truncated: bool = False


@dataclass(frozen=True)
class ObjectRecord:
    """
    One listed object under the uniform schema.

    `backend_id` is a lookup reference to the owning descriptor. Records
    are produced fresh for each listing and never cached.
    """
    key: str
    size: int
    last_modified: Optional[datetime]
    url: str
    backend_id: str
    bucket: Optional[str] = None
    account_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError("Object size cannot be negative")


@dataclass(frozen=True)
class BackendError:
    """A per-backend failure converted to data."""
    backend_id: str
    message: str
    bucket: Optional[str] = None


@dataclass
class Listing:
    """
    Result of listing every configured set.

    Errors and records are kept apart: errors never take part in the
    record ordering.
    """
    errors: list[BackendError] = field(default_factory=list)
    records: list[ObjectRecord] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeleteError:
    """
    A failed deletion.

    `key` is None when the whole batch failed rather than a single key.
    """
    key: Optional[str]
    code: str
    message: str


@dataclass
class DeleteOutcome:
    """What one bulk delete call reported."""
    deleted: list[str] = field(default_factory=list)
    errors: list[DeleteError] = field(default_factory=list)


@dataclass
class PruneResult:
    """Outcome of one prune sweep against one backend."""
    backend_id: str
    dry_run: bool
    deleted_count: int = 0
    deleted_keys: list[str] = field(default_factory=list)
    errors: list[DeleteError] = field(default_factory=list)

"""
Process-wide registry of storage sets.

Built once when the application starts: the environment is resolved to
descriptors and every ready descriptor gets its own storage client. The
registry is read-only afterwards, so requests can share it without
locking.
"""

import logging
from dataclasses import replace
from typing import Callable, Iterator, Mapping, Optional, Sequence

from ...core.storage.aggregator import find_backend
from ...core.storage.lister import Backend, ObjectStore
from ...core.storage.models import BackendDescriptor, Misconfigured
from ...core.storage.resolver import ResolverDefaults, resolve_backends
from .client import create_storage_client

logger = logging.getLogger(__name__)

ClientFactory = Callable[[BackendDescriptor], ObjectStore]


class BackendRegistry:
    """Ordered, immutable collection of configured sets."""

    def __init__(self, backends: Sequence[Backend]) -> None:
        self._backends = tuple(backends)

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Sequence[BackendDescriptor],
        client_factory: ClientFactory,
    ) -> "BackendRegistry":
        """
        Pair each ready descriptor with a client from `client_factory`.

        A descriptor whose client cannot be built (for example a malformed
        endpoint) is downgraded to Misconfigured instead of failing start-up.
        """
        backends = []
        for descriptor in descriptors:
            if not descriptor.is_ready:
                backends.append(Backend(descriptor=descriptor))
                continue
            try:
                store = client_factory(descriptor)
            except Exception as e:
                logger.error(
                    "Failed to create storage client",
                    extra={"set": descriptor.id, "error": str(e)},
                )
                broken = replace(
                    descriptor,
                    credentials=None,
                    status=Misconfigured(reason=f"Client setup failed: {e}"),
                )
                backends.append(Backend(descriptor=broken))
                continue
            backends.append(Backend(descriptor=descriptor, store=store))
        return cls(backends)

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str],
        defaults: ResolverDefaults = ResolverDefaults(),
        prefixes: Sequence[str] = (),
        mock_mode: bool = False,
        page_size: int = 1000,
        client_factory: Optional[ClientFactory] = None,
    ) -> "BackendRegistry":
        """Resolve the environment and build one client per ready set."""
        if client_factory is None:
            def client_factory(descriptor: BackendDescriptor) -> ObjectStore:
                return create_storage_client(descriptor, mock_mode=mock_mode, page_size=page_size)

        descriptors = resolve_backends(environ, defaults=defaults, prefixes=prefixes)
        return cls.from_descriptors(descriptors, client_factory)

    def __iter__(self) -> Iterator[Backend]:
        return iter(self._backends)

    def __len__(self) -> int:
        return len(self._backends)

    @property
    def backends(self) -> tuple[Backend, ...]:
        return self._backends

    @property
    def ready_count(self) -> int:
        return sum(1 for backend in self._backends if backend.is_ready)

    def get(self, backend_id: str) -> Backend:
        """Raises BackendNotFoundError for unknown ids."""
        return find_backend(self._backends, backend_id)

    def frontend_origins(self) -> list[str]:
        """Distinct frontend origins of all sets, '*' alone if any set allows all."""
        origins: list[str] = []
        for backend in self._backends:
            origin = backend.descriptor.frontend_origin
            if origin == "*":
                return ["*"]
            if origin not in origins:
                origins.append(origin)
        return origins

    def summary(self) -> list[dict]:
        """Loggable overview. Never includes credentials."""
        return [
            {
                "id": backend.id,
                "bucket": backend.descriptor.bucket,
                "error": backend.descriptor.error is not None,
            }
            for backend in self._backends
        ]

"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (is at least one storage set usable?)

Readiness only inspects the configuration resolved at start-up; it makes
no storage calls, so load balancers can poll it cheaply.
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import RegistryDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check storage.",
)
async def health_check(registry: RegistryDep) -> HealthResponse:
    """Liveness check - is the process alive?"""
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "sets": len(registry),
            "ready_sets": registry.ready_count,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if at least one storage set is configured correctly.",
    responses={
        503: {
            "description": "No usable storage set",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(registry: RegistryDep, response: Response) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Reports one check per storage set. Misconfigured sets show their
    reason but only make the service not ready when no set is usable.
    """
    checks = [
        ReadinessCheck(
            name=f"set:{backend.id}",
            status="ok" if backend.is_ready else "error",
            error=backend.descriptor.error,
        )
        for backend in registry
    ]

    ready = registry.ready_count > 0
    if not ready:
        logger.warning("Readiness check failed, no usable storage set")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )

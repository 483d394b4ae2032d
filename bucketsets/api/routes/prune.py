"""
Prune endpoints (images only).

Deletes image objects older than `ttl` seconds. Intended to be hit by a
scheduler; `dry=true` reports what would go without deleting anything.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.storage.models import (
    BackendError,
    BackendNotFoundError,
    BackendUnavailableError,
    PruneResult,
)
from ...core.storage.pruner import prune_all, prune_backend
from ..dependencies import RegistryDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class DeleteErrorItem(BaseModel):
    """A key (or whole batch, when key is null) that could not be deleted."""
    key: Optional[str] = None
    code: str
    message: str


class PruneItem(BaseModel):
    """Sweep outcome for one set."""
    model_config = ConfigDict(populate_by_name=True)

    set_id: str = Field(alias="set")
    deleted: int = Field(description="Objects deleted, or that would be deleted on a dry run")
    dry: bool
    items: list[str] = Field(description="Deleted keys; capped sample on a dry run")
    errors: list[DeleteErrorItem] = []

    @classmethod
    def from_result(cls, result: PruneResult) -> "PruneItem":
        return cls(
            set_id=result.backend_id,
            deleted=result.deleted_count,
            dry=result.dry_run,
            items=result.deleted_keys,
            errors=[
                DeleteErrorItem(key=e.key, code=e.code, message=e.message)
                for e in result.errors
            ],
        )


class PruneErrorItem(BaseModel):
    """A set that could not be swept."""
    model_config = ConfigDict(populate_by_name=True)

    set_id: str = Field(alias="set")
    error: str


class PruneAllResponse(BaseModel):
    ok: bool = True
    ttl: int
    dry: bool
    results: list[Union[PruneErrorItem, PruneItem]]


class PruneSetResponse(PruneItem):
    ok: bool = True


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/prune",
    response_model=PruneAllResponse,
    summary="Prune aged images in every set",
)
async def prune_all_sets(
    registry: RegistryDep,
    settings: SettingsDep,
    ttl: Optional[int] = Query(None, ge=0, description="Maximum age in seconds"),
    dry: bool = Query(False, description="Report without deleting"),
) -> PruneAllResponse:
    ttl = settings.prune_default_ttl_seconds if ttl is None else ttl

    logger.info("Prune requested", extra={"ttl": ttl, "dry": dry, "sets": len(registry)})

    outcomes = await prune_all(
        registry.backends,
        max_age_seconds=ttl,
        dry_run=dry,
        batch_size=settings.prune_batch_size,
        sample_limit=settings.prune_sample_limit,
    )

    results: list[Union[PruneErrorItem, PruneItem]] = []
    for outcome in outcomes:
        if isinstance(outcome, BackendError):
            results.append(PruneErrorItem(set_id=outcome.backend_id, error=outcome.message))
        else:
            results.append(PruneItem.from_result(outcome))

    return PruneAllResponse(ttl=ttl, dry=dry, results=results)


@router.get(
    "/prune/{set_id}",
    response_model=PruneSetResponse,
    summary="Prune aged images in one set",
    responses={
        400: {"description": "Set is misconfigured"},
        404: {"description": "Unknown set"},
        500: {"description": "Listing failed"},
    },
)
async def prune_set(
    set_id: str,
    registry: RegistryDep,
    settings: SettingsDep,
    ttl: Optional[int] = Query(None, ge=0, description="Maximum age in seconds"),
    dry: bool = Query(False, description="Report without deleting"),
) -> PruneSetResponse:
    ttl = settings.prune_default_ttl_seconds if ttl is None else ttl

    try:
        result = await prune_backend(
            registry.backends,
            set_id,
            max_age_seconds=ttl,
            dry_run=dry,
            batch_size=settings.prune_batch_size,
            sample_limit=settings.prune_sample_limit,
        )
    except BackendNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="set not found",
        )
    except BackendUnavailableError as e:
        if e.misconfigured:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=e.message,
            )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"set": set_id, "error": e.message},
        )

    item = PruneItem.from_result(result)
    return PruneSetResponse(**item.model_dump())

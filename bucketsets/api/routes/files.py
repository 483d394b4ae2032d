"""
File listing endpoints.

The frontend polls these to render every object across all sets, newest
first. Responses must never be cached by the browser or a CDN: a stale
list would show images that were pruned minutes ago.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.storage.aggregator import list_across_backends, list_backend
from ...core.storage.models import (
    BackendError,
    BackendNotFoundError,
    BackendUnavailableError,
    ObjectRecord,
)
from ..dependencies import RegistryDep

logger = logging.getLogger(__name__)

router = APIRouter()

NO_STORE = "no-store, max-age=0, must-revalidate"


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class FileItem(BaseModel):
    """One object in a set."""
    model_config = ConfigDict(populate_by_name=True)

    set_id: str = Field(alias="set", description="Set the object belongs to")
    account: Optional[str] = Field(None, description="Account id of the set, if configured")
    bucket: Optional[str] = Field(None, description="Bucket name")
    name: str = Field(description="Object key")
    size: int = Field(description="Size in bytes")
    last_modified: Optional[datetime] = Field(None, alias="lastModified")
    url: str = Field(description="Public URL of the object")

    @classmethod
    def from_record(cls, record: ObjectRecord) -> "FileItem":
        return cls(
            set_id=record.backend_id,
            account=record.account_id,
            bucket=record.bucket,
            name=record.key,
            size=record.size,
            last_modified=record.last_modified,
            url=record.url,
        )


class FileErrorItem(BaseModel):
    """A set that could not be listed."""
    model_config = ConfigDict(populate_by_name=True)

    set_id: str = Field(alias="set")
    bucket: Optional[str] = None
    error: str

    @classmethod
    def from_error(cls, error: BackendError) -> "FileErrorItem":
        return cls(set_id=error.backend_id, bucket=error.bucket, error=error.message)


class SetFilesResponse(BaseModel):
    """Objects of a single set."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    set_id: str = Field(alias="set")
    files: list[FileItem]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/files",
    response_model=list[Union[FileErrorItem, FileItem]],
    summary="List objects across all sets",
    description="Error entries first, then every object sorted newest first.",
)
async def list_files(response: Response, registry: RegistryDep):
    response.headers["Cache-Control"] = NO_STORE

    listing = await list_across_backends(registry.backends)

    if listing.errors:
        logger.warning(
            "Some sets could not be listed",
            extra={"sets": [e.backend_id for e in listing.errors]},
        )

    return [
        *(FileErrorItem.from_error(error) for error in listing.errors),
        *(FileItem.from_record(record) for record in listing.records),
    ]


@router.get(
    "/files/{set_id}",
    response_model=SetFilesResponse,
    summary="List objects of one set",
    responses={
        404: {"description": "Unknown set"},
        500: {"description": "Set is misconfigured or listing failed"},
    },
)
async def list_set_files(set_id: str, response: Response, registry: RegistryDep):
    response.headers["Cache-Control"] = NO_STORE

    try:
        records = await list_backend(registry.backends, set_id)
    except BackendNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="set not found",
            headers={"Cache-Control": NO_STORE},
        )
    except BackendUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"set": set_id, "error": e.message},
            headers={"Cache-Control": NO_STORE},
        )

    return SetFilesResponse(
        set_id=set_id,
        files=[FileItem.from_record(record) for record in records],
    )

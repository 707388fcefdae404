"""
Archive listing, purge and restore endpoints
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from core.config import settings
from core.exceptions import InputValidationError
from retirement.archive_store import ArchiveStore
from schemas.api import (
    ArchiveIdsRequest,
    ArchiveListResponse,
    PurgeResponse,
    RestoreResponse,
)
from typing import Optional
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/archive", tags=["Archive"])


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")


def _require_ids(payload: ArchiveIdsRequest, request_id: str) -> None:
    if not payload.archive_ids:
        raise InputValidationError(
            "At least one archiveId is required",
            context={"field_name": "archiveIds", "request_id": request_id}
        )


@router.get("", response_model=ArchiveListResponse)
async def list_archive(
    request: Request,
    role: Optional[str] = Query(None, description="Filter by role; 'all' for every role"),
    db: AsyncSession = Depends(get_db)
):
    """List archive entries, newest first."""
    request_id = _request_id(request)
    logger.info(f"[{request_id}] GET /archive - role={role}")

    store = ArchiveStore(db, settings.RETIREMENT_CHUNK_SIZE)
    listing = await store.list_archived(role)
    return ArchiveListResponse(**listing)


@router.post("/delete", response_model=PurgeResponse)
async def purge_archive(
    request: Request,
    payload: ArchiveIdsRequest,
    db: AsyncSession = Depends(get_db)
):
    """Permanently delete archive entries."""
    request_id = _request_id(request)
    _require_ids(payload, request_id)
    logger.info(f"[{request_id}] POST /archive/delete - {len(payload.archive_ids)} ids")

    store = ArchiveStore(db, settings.RETIREMENT_CHUNK_SIZE)
    outcome = await store.purge(payload.archive_ids)

    return PurgeResponse(
        success=outcome["affected_rows"] > 0,
        deleted_archive_ids=outcome["deleted"],
        affected_rows=outcome["affected_rows"],
    )


@router.post("/restore", response_model=RestoreResponse)
async def restore_archive(
    request: Request,
    payload: ArchiveIdsRequest,
    db: AsyncSession = Depends(get_db)
):
    """Re-create live accounts from archive entries."""
    request_id = _request_id(request)
    _require_ids(payload, request_id)
    logger.info(f"[{request_id}] POST /archive/restore - {len(payload.archive_ids)} ids")

    store = ArchiveStore(db, settings.RETIREMENT_CHUNK_SIZE)
    outcome = await store.restore(payload.archive_ids)

    return RestoreResponse(
        success=len(outcome["restored"]) > 0,
        restored=outcome["restored"],
        errors=outcome["errors"],
    )

"""
Account retirement endpoint
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db, get_role_profile
from core.exceptions import InputValidationError
from retirement.coordinator import RetirementCoordinator
from retirement.profiles import RoleProfile
from schemas.api import (
    ArchiveAccountsRequest,
    ArchiveAccountsResponse,
    ArchivedAccountResponse,
)
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("/{role}/archive", response_model=ArchiveAccountsResponse)
async def archive_accounts(
    request: Request,
    payload: ArchiveAccountsRequest,
    profile: RoleProfile = Depends(get_role_profile),
    db: AsyncSession = Depends(get_db)
):
    """
    Archive and remove a batch of accounts of one role.

    The batch is all-or-nothing. Ids without a live account are omitted
    from the response instead of failing the batch.
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    logger.info(
        f"[{request_id}] POST /accounts/{profile.role}/archive - "
        f"{len(payload.user_ids)} ids"
    )

    if not payload.user_ids:
        raise InputValidationError(
            "At least one valid userId is required",
            context={"field_name": "userIds", "request_id": request_id}
        )

    coordinator = RetirementCoordinator(db, profile)
    result = await coordinator.retire(payload.user_ids, payload.reason)

    logger.info(
        f"[{request_id}] Archived {len(result.archived)} {profile.label} account(s), "
        f"{len(result.not_found)} not found"
    )

    return ArchiveAccountsResponse(
        success=True,
        archived=[
            ArchivedAccountResponse(**account.to_response())
            for account in result.archived
        ]
    )

"""
Moderation endpoints for API v1.

Administrators review the deletion queue and approve or deny requests.
All routes require the ``admin`` role (see ``require_admin``).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from hustle_village_api.app.api.deps import get_deletion_service
from hustle_village_api.app.core.security import require_admin
from hustle_village_api.app.schemas.delete_request import (
    DeleteRequestDecision,
    DeleteRequestListItem,
    DeleteRequestRead,
    DeleteRequestResolution,
    DeleteRequestStatus,
)
from hustle_village_api.app.schemas.user import Caller
from hustle_village_api.app.services.deletion_service import DeletionService


router = APIRouter()


@router.get("/delete-requests", response_model=List[DeleteRequestListItem])
async def list_delete_requests(
    status: Optional[str] = Query(None, description="pending, approved or denied"),
    admin: Caller = Depends(require_admin),
    deletions: DeletionService = Depends(get_deletion_service),
) -> List[DeleteRequestListItem]:
    """Deletion requests, newest first, with service and seller summaries."""
    return await deletions.list_requests(status)


@router.get("/delete-requests/{request_id}", response_model=DeleteRequestRead)
async def get_delete_request(
    request_id: int,
    admin: Caller = Depends(require_admin),
    deletions: DeletionService = Depends(get_deletion_service),
) -> DeleteRequestRead:
    return await deletions.get_request(request_id)


@router.post("/delete-requests/{request_id}/approve", response_model=DeleteRequestResolution)
async def approve_delete_request(
    request_id: int,
    payload: Optional[DeleteRequestDecision] = None,
    admin: Caller = Depends(require_admin),
    deletions: DeletionService = Depends(get_deletion_service),
) -> DeleteRequestResolution:
    """Approve a pending request and soft‑delete its service."""
    comment = payload.admin_comment if payload else None
    return await deletions.resolve_request(admin, request_id, DeleteRequestStatus.APPROVED, comment)


@router.post("/delete-requests/{request_id}/deny", response_model=DeleteRequestResolution)
async def deny_delete_request(
    request_id: int,
    payload: Optional[DeleteRequestDecision] = None,
    admin: Caller = Depends(require_admin),
    deletions: DeletionService = Depends(get_deletion_service),
) -> DeleteRequestResolution:
    """Deny a pending request; the service stays as it is."""
    comment = payload.admin_comment if payload else None
    return await deletions.resolve_request(admin, request_id, DeleteRequestStatus.DENIED, comment)

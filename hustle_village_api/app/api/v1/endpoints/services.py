"""
Service listing endpoints for API v1.

The catalogue (``GET /services`` and ``GET /services/{id}``) is public.
Everything else acts on the caller's own listings and requires a bearer
token: ``403`` when the listing belongs to someone else, ``404`` when it
does not exist, ``409`` when its state forbids the change (deleted, or
a deletion request already pending).

Listings are never deleted directly; ``request-delete`` files a request
that an administrator must approve.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status

from hustle_village_api.app.api.deps import get_deletion_service, get_listing_service
from hustle_village_api.app.core.security import get_current_user
from hustle_village_api.app.schemas.delete_request import DeleteRequestCreate, DeleteRequestCreated
from hustle_village_api.app.schemas.service import (
    PublicServiceRead,
    ServiceDraft,
    ServiceRead,
    ServiceToggleResult,
)
from hustle_village_api.app.schemas.user import Caller
from hustle_village_api.app.services.deletion_service import DeletionService
from hustle_village_api.app.services.listing_service import ListingService


router = APIRouter()


@router.get("", response_model=List[PublicServiceRead])
async def list_public_services(
    listings: ListingService = Depends(get_listing_service),
) -> List[PublicServiceRead]:
    """Live listings, newest first, each with the seller's display name."""
    return await listings.list_public()


@router.get("/mine", response_model=List[ServiceRead])
async def list_my_services(
    current_user: Caller = Depends(get_current_user),
    listings: ListingService = Depends(get_listing_service),
) -> List[ServiceRead]:
    """All of the caller's listings, including paused and deleted ones."""
    return await listings.list_mine(current_user)


@router.get("/{service_id}", response_model=PublicServiceRead)
async def get_service(
    service_id: int,
    listings: ListingService = Depends(get_listing_service),
) -> PublicServiceRead:
    return await listings.get_public(service_id)


@router.post("", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def create_service(
    draft: ServiceDraft,
    current_user: Caller = Depends(get_current_user),
    listings: ListingService = Depends(get_listing_service),
) -> ServiceRead:
    """Publish a new listing owned by the caller.

    ``image_urls`` may contain hosted URLs or base64 images.  Images
    that cannot be uploaded are left out unless strict uploads are
    enabled.
    """
    return await listings.create_service(current_user, draft)


@router.put("/{service_id}", response_model=ServiceRead)
@router.patch("/{service_id}", response_model=ServiceRead)
async def update_service(
    service_id: int,
    draft: ServiceDraft,
    current_user: Caller = Depends(get_current_user),
    listings: ListingService = Depends(get_listing_service),
) -> ServiceRead:
    """Edit a listing.  All core fields are required; omit ``image_urls`` to keep the images."""
    return await listings.update_service(current_user, service_id, draft)


@router.patch("/{service_id}/toggle", response_model=ServiceToggleResult)
async def toggle_service(
    service_id: int,
    current_user: Caller = Depends(get_current_user),
    listings: ListingService = Depends(get_listing_service),
) -> ServiceToggleResult:
    """Pause an active listing or resume a paused one."""
    return await listings.toggle_service(current_user, service_id)


@router.post(
    "/{service_id}/request-delete",
    response_model=DeleteRequestCreated,
    status_code=status.HTTP_201_CREATED,
)
async def request_service_deletion(
    service_id: int,
    payload: Optional[DeleteRequestCreate] = None,
    current_user: Caller = Depends(get_current_user),
    deletions: DeletionService = Depends(get_deletion_service),
) -> DeleteRequestCreated:
    """Ask an administrator to retire the listing.  ``reason`` is optional."""
    reason = payload.reason if payload else None
    return await deletions.request_deletion(current_user, service_id, reason)

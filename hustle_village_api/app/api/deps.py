"""
Dependencies that build services for a request.

Collaborators (database, identity provider client, blob store) are
created once in ``create_app`` and kept on ``app.state``; these
functions wire them into the service objects the endpoints use.
Tests replace collaborators on ``app.state`` rather than patching
modules.
"""

from fastapi import Depends, Request

from ..core.db import Database, get_db
from ..services.auth_service import AuthService
from ..services.deletion_service import DeletionService
from ..services.image_service import ImageIngestionService
from ..services.listing_service import ListingService
from ..services.user_service import UserDirectory


def get_user_directory(request: Request, db: Database = Depends(get_db)) -> UserDirectory:
    return UserDirectory(db, request.app.state.settings)


def get_auth_service(
    request: Request, users: UserDirectory = Depends(get_user_directory)
) -> AuthService:
    return AuthService(request.app.state.identity_client, users)


def get_listing_service(
    request: Request,
    db: Database = Depends(get_db),
    users: UserDirectory = Depends(get_user_directory),
) -> ListingService:
    state = request.app.state
    images = ImageIngestionService(state.blob_store, strict=state.settings.strict_image_uploads)
    return ListingService(db, images, users)


def get_deletion_service(db: Database = Depends(get_db)) -> DeletionService:
    return DeletionService(db)

"""
Main entrypoint for the HustleVillage API.

This module assembles the FastAPI application: it sets up logging,
builds the collaborators every request needs (database, identity
verifier, identity provider client, blob store), registers the error
handlers and includes the versioned routers.  ``create_app`` builds and
configures the app, which is then instantiated at module import time as
``app``, e.g.::

    uvicorn hustle_village_api.app.main:app --reload

Collaborators are kept on ``app.state``.  Tests build their own app
with ``create_app`` and pass fakes for the outbound integrations.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api.v1.router import router as v1_router
from .core.config import Settings, settings as default_settings
from .core.db import Database
from .core.errors import FatalError, ServiceError, ValidationError
from .core.identity import (
    IdentityProviderClient,
    LocalClaimsTokenResolver,
    RemoteTokenResolver,
    TokenResolver,
)
from .core.logging_config import setup_logging
from .core.security import IdentityVerifier
from .core.storage import BlobStore, SupabaseStorage
from .services.user_service import UserDirectory


logger = logging.getLogger(__name__)


def _error_response(exc: ServiceError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
        headers=headers,
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def create_app(
    settings: Optional[Settings] = None,
    *,
    identity_client: Optional[IdentityProviderClient] = None,
    blob_store: Optional[BlobStore] = None,
    resolver: Optional[TokenResolver] = None,
) -> FastAPI:
    """Create and configure a FastAPI application.

    Parameters
    ----------
    settings : Optional[Settings]
        Configuration to use; defaults to the environment‑derived
        ``core.config.settings``.
    identity_client : Optional[IdentityProviderClient]
        Provider client for signup and remote token checks.  Built from
        ``settings`` when omitted.
    blob_store : Optional[BlobStore]
        Image storage.  Defaults to ``SupabaseStorage``.
    resolver : Optional[TokenResolver]
        Bearer token resolver.  Defaults to the remote resolver, or the
        local HS256 resolver when ``AUTH_MODE=local``.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    settings = settings or default_settings
    # Initialise logging before anything else so that the collaborators
    # below can safely log messages.
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)

    db = Database.from_settings(settings)
    if identity_client is None:
        identity_client = IdentityProviderClient(
            settings.identity_provider_url,
            settings.identity_provider_anon_key,
            timeout=settings.external_timeout_seconds,
        )
    if resolver is None:
        if settings.auth_mode.lower() == "local":
            resolver = LocalClaimsTokenResolver(settings.jwt_secret)
        else:
            resolver = RemoteTokenResolver(identity_client)
    if blob_store is None:
        blob_store = SupabaseStorage(
            settings.identity_provider_url,
            settings.identity_provider_service_key,
            settings.storage_bucket,
            timeout=settings.external_timeout_seconds,
        )

    app.state.settings = settings
    app.state.db = db
    app.state.identity_client = identity_client
    app.state.blob_store = blob_store
    app.state.verifier = IdentityVerifier(resolver, UserDirectory(db, settings))

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if isinstance(exc, FatalError):
            logger.critical("%s %s failed: %s", request.method, request.url.path, exc.message)
        elif exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error_response(ValidationError(_describe_validation_errors(exc)))

    # Mount versioned routes under /api/v1.
    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        # Creates the database file if needed and applies migrations.
        db.init()
        logger.info("Database ready at %s", db.path)

    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()

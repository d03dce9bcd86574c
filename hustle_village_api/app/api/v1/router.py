"""
Top‑level router for version 1 of the API.

This router aggregates domain‑specific routers (auth, services, admin
moderation, info) under a unified prefix.  When new domains are
introduced, update this file to include their routers.
"""

from fastapi import APIRouter

from .endpoints import admin, auth, info, services

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(services.router, prefix="/services", tags=["services"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(info.router, prefix="/info", tags=["info"])

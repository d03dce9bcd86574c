"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
application can be imported without any configuration; outbound
integrations (identity provider, blob storage) report themselves as
unavailable until their URLs and keys are set.
"""

import os
from dataclasses import dataclass
from typing import List


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _split(value: str) -> List[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "HustleVillage API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = _flag("DEBUG", "false")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    # Path to the SQLite database.  Relative paths are resolved against
    # the project root by ``core.db``.
    database_url: str = os.getenv("DATABASE_URL", "hustle_village.db")
    database_timeout_seconds: float = float(os.getenv("DATABASE_TIMEOUT_SECONDS", "5"))

    # Hosted identity provider (Supabase‑compatible auth and storage API).
    identity_provider_url: str = os.getenv("DB_PROJECT_URL", "")
    identity_provider_anon_key: str = os.getenv("ANON_KEY", "")
    identity_provider_service_key: str = os.getenv("SERVICE_ROLE_KEY", "")

    # ``remote`` asks the provider to validate every bearer token.
    # ``local`` checks the token signature against ``jwt_secret`` and
    # reads the embedded claims without a network round trip.
    auth_mode: str = os.getenv("AUTH_MODE", "remote")
    jwt_secret: str = os.getenv("JWT_SECRET", "")

    # Comma‑separated list of institutional domains allowed to sign up.
    allowed_email_domains: str = os.getenv("ALLOWED_EMAIL_DOMAINS", "ashesi.edu.gh")

    # Comma‑separated list of e‑mails that receive the ``admin`` role
    # when their profile is created or refreshed.
    admin_emails: str = os.getenv("ADMIN_EMAILS", "")
    enforce_admin_role: bool = _flag("ENFORCE_ADMIN_ROLE", "true")

    storage_bucket: str = os.getenv("STORAGE_BUCKET", "service-images")
    # When false, an image that cannot be decoded or uploaded is dropped
    # from the listing and logged; when true the whole operation fails.
    strict_image_uploads: bool = _flag("STRICT_IMAGE_UPLOADS", "false")

    external_timeout_seconds: float = float(os.getenv("EXTERNAL_TIMEOUT_SECONDS", "10"))

    @property
    def allowed_domains(self) -> List[str]:
        return _split(self.allowed_email_domains)

    @property
    def admin_email_list(self) -> List[str]:
        return _split(self.admin_emails)


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Because the dataclass
# computes values at import time, environment variables should be set
# before importing this module.
settings = Settings()

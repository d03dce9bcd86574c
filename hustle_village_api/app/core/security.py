"""
Bearer authentication for API routes.

``IdentityVerifier`` is the single path from a raw bearer credential to
the ``Caller`` a request runs as: the configured ``TokenResolver``
turns the token into provider claims, then the user directory maps the
claims' e‑mail to the application profile.  Bearer flows never create
profiles; a verified identity with no profile is rejected.  The
verifier reads only, so verifying the same credential twice yields the
same caller.

``get_current_user`` and ``require_admin`` are the FastAPI dependencies
routes use.  ``create_access_token`` mints tokens in the format the
local resolver accepts (developer tooling and tests).
"""

import logging
import time
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import ForbiddenError, UnauthenticatedError
from .identity import TokenResolver, encode_hs256
from ..schemas.user import Caller
from ..services.user_service import UserDirectory


logger = logging.getLogger(__name__)


def create_access_token(
    data: Dict[str, Any], secret: str, expires_delta: Optional[int] = None
) -> str:
    """Create a signed HS256 token carrying ``data`` plus an ``exp`` claim.

    Parameters
    ----------
    data : dict
        Claims to embed, e.g. ``{"sub": "...", "email": "..."}``.
    secret : str
        Shared signing secret (``settings.jwt_secret``).
    expires_delta : Optional[int]
        Lifetime in seconds; defaults to one hour.  Negative values
        produce an already expired token.
    """
    to_encode = data.copy()
    lifetime = 3600 if expires_delta is None else expires_delta
    to_encode["exp"] = int(time.time()) + lifetime
    return encode_hs256(to_encode, secret)


class IdentityVerifier:
    """Resolves bearer credentials to application callers."""

    def __init__(self, resolver: TokenResolver, users: UserDirectory) -> None:
        self.resolver = resolver
        self.users = users

    async def verify(self, raw_credential: Optional[str]) -> Caller:
        token = (raw_credential or "").strip()
        if token.lower().startswith("bearer "):
            token = token[7:].strip()
        if not token or " " in token:
            logger.warning("Rejected request with a missing or malformed credential")
            raise UnauthenticatedError("Missing or invalid credential")

        try:
            claims = await self.resolver.resolve(token)
        except UnauthenticatedError as exc:
            logger.warning("Rejected bearer credential: %s", exc.message)
            raise

        user = await self.users.get_by_email(claims.email)
        if user is None:
            logger.warning("Verified identity has no application profile")
            raise UnauthenticatedError("User profile missing")
        return Caller(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            phone_number=user.phone_number,
            role=user.role,
            subject=claims.subject,
        )


security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Caller:
    """Dependency that retrieves the current authenticated caller.

    Missing, malformed, invalid or expired credentials raise
    ``UnauthenticatedError`` (HTTP 401).
    """
    verifier: IdentityVerifier = request.app.state.verifier
    return await verifier.verify(credentials.credentials if credentials else None)


async def require_admin(
    request: Request,
    current_user: Caller = Depends(get_current_user),
) -> Caller:
    """Dependency that additionally requires the ``admin`` role.

    Enforcement can be switched off with ``ENFORCE_ADMIN_ROLE=false``,
    in which case any authenticated caller may moderate.
    """
    if request.app.state.settings.enforce_admin_role and not current_user.is_admin:
        raise ForbiddenError("Admin privileges required")
    return current_user

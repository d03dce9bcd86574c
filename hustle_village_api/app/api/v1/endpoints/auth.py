"""
Signup endpoints for API v1.

Signup is passwordless: ``/signup-request`` e‑mails a one‑time passcode
to an institutional address, ``/signup-verify`` exchanges it for the
provider's access and refresh tokens and creates (or refreshes) the
application profile.  Subsequent requests authenticate with
``Authorization: Bearer <accessToken>``.
"""

from fastapi import APIRouter, Depends

from hustle_village_api.app.api.deps import get_auth_service
from hustle_village_api.app.core.security import get_current_user
from hustle_village_api.app.schemas.auth import (
    SignupRequest,
    SignupRequestResult,
    SignupVerify,
    SignupVerifyResult,
)
from hustle_village_api.app.schemas.user import Caller
from hustle_village_api.app.services.auth_service import AuthService


router = APIRouter()


@router.post("/signup-request", response_model=SignupRequestResult)
async def request_signup(
    payload: SignupRequest,
    auth: AuthService = Depends(get_auth_service),
) -> SignupRequestResult:
    """Send a verification code to the applicant's e‑mail.

    ``email``, ``fullName`` and ``phoneNumber`` are required and the
    e‑mail must belong to an allow‑listed institutional domain.
    """
    return await auth.request_signup(payload.email, payload.full_name, payload.phone_number)


@router.post("/signup-verify", response_model=SignupVerifyResult)
async def verify_signup(
    payload: SignupVerify,
    auth: AuthService = Depends(get_auth_service),
) -> SignupVerifyResult:
    """Verify the e‑mailed code and return the user with session tokens."""
    return await auth.verify_signup(payload.email, payload.code)


@router.get("/me", response_model=Caller)
async def read_me(current_user: Caller = Depends(get_current_user)) -> Caller:
    """Return the profile the bearer token resolves to."""
    return current_user

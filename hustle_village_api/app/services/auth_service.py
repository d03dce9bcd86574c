"""
Passcode signup.

Signup is two calls.  ``request_signup`` validates the applicant and
asks the identity provider to e‑mail a one‑time passcode, stashing the
name and phone number as provider metadata.  ``verify_signup``
exchanges the passcode for a session and upserts the application
profile from that metadata.
"""

import logging
from typing import Optional

from ..core.errors import ValidationError
from ..core.identity import IdentityProviderClient
from ..schemas.auth import SignupRequestResult, SignupVerifyResult
from .user_service import UserDirectory


logger = logging.getLogger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AuthService:
    """Signup flow on top of the identity provider and the user directory."""

    def __init__(self, provider: IdentityProviderClient, users: UserDirectory) -> None:
        self.provider = provider
        self.users = users

    async def request_signup(
        self,
        email: Optional[str],
        full_name: Optional[str],
        phone_number: Optional[str],
    ) -> SignupRequestResult:
        if _blank(email) or _blank(full_name) or _blank(phone_number):
            raise ValidationError("Email, full_name, and phone_number are required")
        email = email.strip().lower()
        if not self.users.is_allowed_email(email):
            raise ValidationError("Must use an institutional email")
        await self.provider.send_otp(
            email,
            {"full_name": full_name.strip(), "phone_number": phone_number.strip()},
        )
        logger.info("Verification code requested for a new signup")
        return SignupRequestResult(message="Verification code sent to email", email=email)

    async def verify_signup(self, email: Optional[str], code: Optional[str]) -> SignupVerifyResult:
        if _blank(email) or _blank(code):
            raise ValidationError("Email and code (verification code) are required")
        session = await self.provider.verify_otp(email.strip().lower(), code.strip())
        # The provider issues codes for any address; the allow-list is ours to enforce.
        if not self.users.is_allowed_email(session.claims.email):
            logger.warning("Rejected verified identity outside the allowed domains")
            raise ValidationError("Must use an institutional email")
        metadata = session.claims.metadata
        full_name = metadata.get("full_name") or metadata.get("fullName") or ""
        phone_number = metadata.get("phone_number") or metadata.get("phoneNumber") or ""
        if not full_name or not phone_number:
            logger.warning("full_name or phone_number not found in identity metadata")
        user = await self.users.upsert_verified(
            session.claims.email,
            session.claims.subject,
            full_name=str(full_name),
            phone_number=str(phone_number),
        )
        return SignupVerifyResult(
            user=user,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )

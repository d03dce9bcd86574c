"""
Pydantic schemas for the passcode signup flow.

Clients may send either snake_case or camelCase keys (``full_name`` /
``fullName``, ``code`` / ``token``).  Required fields are checked by
``AuthService`` so that missing values produce the same error payload
as every other validation failure.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from .user import UserRead


class SignupRequest(BaseModel):
    """Ask for a one‑time passcode to be e‑mailed."""

    email: Optional[str] = Field(None, examples=["ama.mensah@ashesi.edu.gh"])
    full_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("full_name", "fullName"), examples=["Ama Mensah"]
    )
    phone_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("phone_number", "phoneNumber"), examples=["+233201234567"]
    )


class SignupRequestResult(BaseModel):
    message: str
    email: str


class SignupVerify(BaseModel):
    """Exchange the e‑mailed passcode for a session."""

    email: Optional[str] = None
    code: Optional[str] = Field(
        None, validation_alias=AliasChoices("code", "token"), examples=["123456"]
    )


class SignupVerifyResult(BaseModel):
    """Verified user plus the provider session tokens."""

    message: str = "User verified successfully"
    user: UserRead
    access_token: Optional[str] = Field(None, alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")

    model_config = {
        "populate_by_name": True,
    }

"""
Pydantic models for user data.

``UserRead`` is the public profile returned by signup and ``/auth/me``.
``Caller`` is the authenticated identity attached to a request after
its bearer credential has been verified; services use it for
ownership and role checks.
"""

from typing import Optional

from pydantic import BaseModel, Field


class UserRead(BaseModel):
    """Schema for reading a user from the API."""

    id: int
    email: str = Field(..., examples=["ama.mensah@ashesi.edu.gh"])
    full_name: str = Field("", examples=["Ama Mensah"])
    phone_number: str = Field("", examples=["+233201234567"])
    role: str = Field("user", examples=["user"])
    created_at: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }


class Caller(BaseModel):
    """The application user behind a verified bearer credential."""

    id: int
    email: str
    full_name: str = ""
    phone_number: str = ""
    role: str = "user"
    subject: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

"""
Pydantic schemas for service deletion requests.

A seller asks for a listing to be retired; an administrator approves
or denies the request.  Approval soft‑deletes the service.
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .service import ServiceRead, ServiceSummary


MAX_TEXT_LENGTH = 1000


def _clean_text(value: Optional[str]) -> Optional[str]:
    """Trim whitespace, map blank to ``None`` and enforce a maximum length."""
    if value is None:
        return None
    value = value.strip()
    if len(value) > MAX_TEXT_LENGTH:
        raise ValueError(f"Text must be {MAX_TEXT_LENGTH} characters or fewer")
    return value or None


class DeleteRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class DeleteRequestCreate(BaseModel):
    """Body of ``POST /services/{id}/request-delete``."""

    reason: Optional[str] = Field(None, examples=["No longer offering this service"])

    @field_validator("reason")
    @classmethod
    def sanitize_reason(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)


class DeleteRequestDecision(BaseModel):
    """Body of the admin approve/deny endpoints."""

    admin_comment: Optional[str] = Field(
        None, validation_alias=AliasChoices("admin_comment", "comment"), examples=["ok"]
    )

    @field_validator("admin_comment")
    @classmethod
    def sanitize_comment(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)


class DeleteRequestRead(BaseModel):
    id: int
    service_id: int
    seller_id: int
    reason: Optional[str] = None
    status: DeleteRequestStatus
    requested_at: str
    admin_id: Optional[int] = None
    admin_comment: Optional[str] = None
    processed_at: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }


class RequestedServiceSummary(BaseModel):
    id: int
    title: str
    description: str
    seller_id: int
    created_at: str


class SellerSummary(BaseModel):
    id: int
    email: str
    full_name: str


class DeleteRequestListItem(DeleteRequestRead):
    """A request joined with the service and seller it concerns, for the admin queue."""

    service: Optional[RequestedServiceSummary] = None
    seller: Optional[SellerSummary] = None


class DeleteRequestCreated(BaseModel):
    message: str = "Delete request submitted successfully. Awaiting admin approval."
    delete_request: DeleteRequestRead
    service: ServiceSummary


class DeleteRequestResolution(BaseModel):
    """Outcome of an approve/deny call.  ``service`` is set only when approved."""

    message: str
    action: str = Field(..., examples=["deleted"])
    delete_request: DeleteRequestRead
    service: Optional[ServiceRead] = None

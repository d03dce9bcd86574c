"""
Pydantic models for service listings.

``ServiceDraft`` is deliberately permissive: every field is optional and
``price`` accepts any JSON value, because ``ListingService`` owns the
validation rules (required fields, closed enums, non‑negative numeric
price) and reports them with a single, consistent error payload.
"""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field


CATEGORIES = (
    "food_baking",
    "design_creative",
    "tutoring",
    "beauty_hair",
    "events_music",
    "tech_dev",
)
PRICING_TYPES = ("fixed", "hourly", "negotiable")

UNKNOWN_SELLER = "Unknown Seller"


class ServiceDraft(BaseModel):
    """Fields submitted when creating or editing a service.

    ``image_urls`` holds either already hosted ``http(s)`` URLs or
    base64 payloads (optionally ``data:`` URLs) to be uploaded.  On
    update, omitting it keeps the current images.
    """

    title: Optional[str] = Field(None, examples=["Calculus tutoring"])
    description: Optional[str] = Field(None, examples=["One-on-one sessions for MATH 141"])
    category: Optional[str] = Field(None, examples=["tutoring"])
    price: Any = Field(None, examples=[20])
    pricing_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("pricing_type", "pricingType"), examples=["hourly"]
    )
    image_urls: Optional[List[str]] = Field(
        None, validation_alias=AliasChoices("image_urls", "imageUrls", "images")
    )


class ServiceRead(BaseModel):
    """A service as seen by its owner."""

    id: int
    seller_id: int
    title: str
    description: str
    category: str
    price: float
    pricing_type: str
    image_urls: List[str] = []
    is_active: bool
    is_deleted: bool
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }


class PublicServiceRead(BaseModel):
    """A live service in the public catalogue, with the seller's name inlined."""

    id: int
    title: str
    description: str
    category: str
    price: float
    pricing_type: str
    image_urls: List[str] = []
    seller_id: int
    seller_name: str = UNKNOWN_SELLER
    seller_email: Optional[str] = None
    created_at: str


class ServiceToggleResult(BaseModel):
    message: str = Field(..., examples=["Service is now paused"])
    service: ServiceRead


class ServiceSummary(BaseModel):
    id: int
    title: str

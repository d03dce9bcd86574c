"""
Service lifecycle: create, edit, pause/resume and list listings.

Only the owning seller may change a listing, and a soft‑deleted listing
can no longer be edited or toggled.  Ownership and the deleted flag are
checked up front so that callers get a precise error, and every write is
additionally scoped with ``WHERE id = ? AND seller_id = ? AND
is_deleted = 0`` so that a concurrent approval or edit cannot slip in
between the check and the write.

Retirement is not handled here; see ``deletion_service``.
"""

import json
import logging
import math
import sqlite3
from typing import Any, Dict, List

from ..core.db import Database, utcnow
from ..core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..schemas.service import (
    CATEGORIES,
    PRICING_TYPES,
    UNKNOWN_SELLER,
    PublicServiceRead,
    ServiceDraft,
    ServiceRead,
    ServiceToggleResult,
)
from ..schemas.user import Caller
from .image_service import ImageIngestionService
from .user_service import UserDirectory


logger = logging.getLogger(__name__)

SERVICE_COLUMNS = (
    "id, seller_id, title, description, category, price, pricing_type, image_urls, "
    "is_active, is_deleted, created_at, updated_at, deleted_at"
)


def _image_list(raw: Any) -> List[str]:
    if not raw:
        return []
    return list(json.loads(raw))


def service_from_row(row: sqlite3.Row) -> ServiceRead:
    return ServiceRead(
        id=row["id"],
        seller_id=row["seller_id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        price=row["price"],
        pricing_type=row["pricing_type"],
        image_urls=_image_list(row["image_urls"]),
        is_active=bool(row["is_active"]),
        is_deleted=bool(row["is_deleted"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"],
    )


def load_owned_service(conn: sqlite3.Connection, caller: Caller, service_id: int) -> sqlite3.Row:
    """Fetch a service the caller owns, or raise ``NotFoundError`` / ``ForbiddenError``."""
    row = conn.execute(
        f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?", (service_id,)
    ).fetchone()
    if not row:
        raise NotFoundError("Service not found")
    if row["seller_id"] != caller.id:
        raise ForbiddenError("You can only modify your own services")
    return row


def validate_draft(draft: ServiceDraft) -> Dict[str, Any]:
    """Check a draft and return its normalised fields.

    Category and pricing type are matched case‑insensitively and stored
    in lowercase; title and description are trimmed.
    """
    title = (draft.title or "").strip()
    description = (draft.description or "").strip()
    category = (draft.category or "").strip().lower()
    pricing_type = (draft.pricing_type or "").strip().lower()
    if not title or not description or not category or draft.price is None or not pricing_type:
        raise ValidationError(
            "Missing required fields: title, description, category, price, "
            "and pricing_type are required"
        )
    if category not in CATEGORIES:
        raise ValidationError(f"Invalid category. Must be one of: {', '.join(CATEGORIES)}")
    if pricing_type not in PRICING_TYPES:
        raise ValidationError(
            f"Invalid pricing_type. Must be one of: {', '.join(PRICING_TYPES)}"
        )
    price = draft.price
    # bool is an int subclass; JSON true/false is not a price.
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise ValidationError("Price must be a non-negative number")
    try:
        price = float(price)
    except OverflowError as exc:
        raise ValidationError("Price must be a non-negative number") from exc
    if not math.isfinite(price) or price < 0:
        raise ValidationError("Price must be a non-negative number")
    return {
        "title": title,
        "description": description,
        "category": category,
        "price": price,
        "pricing_type": pricing_type,
    }


class ListingService:
    """Owner operations on service listings plus the public catalogue."""

    def __init__(self, db: Database, images: ImageIngestionService, users: UserDirectory) -> None:
        self.db = db
        self.images = images
        self.users = users

    async def create_service(self, caller: Caller, draft: ServiceDraft) -> ServiceRead:
        """Validate and persist a new, active listing owned by ``caller``.

        Images that fail to ingest are dropped (see ``image_service``);
        the listing is still created with the rest.
        """
        fields = validate_draft(draft)
        if await self.users.get_by_id(caller.id) is None:
            raise NotFoundError("Seller does not exist")

        image_urls = await self.images.ingest(draft.image_urls)

        now = utcnow()
        with self.db.session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO services (seller_id, title, description, category, price, pricing_type,
                                      image_urls, is_active, is_deleted, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, 0, ?, ?)
                """,
                (
                    caller.id,
                    fields["title"],
                    fields["description"],
                    fields["category"],
                    fields["price"],
                    fields["pricing_type"],
                    json.dumps(image_urls) if image_urls else None,
                    now,
                    now,
                ),
            )
            row = conn.execute(
                f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        logger.info("User %s created service %s", caller.id, row["id"])
        return service_from_row(row)

    async def update_service(
        self, caller: Caller, service_id: int, draft: ServiceDraft
    ) -> ServiceRead:
        """Replace the editable fields of a listing the caller owns.

        Images are replaced only when ``draft.image_urls`` is supplied;
        omitting it keeps the current ones, an empty list clears them.
        """
        with self.db.session() as conn:
            row = load_owned_service(conn, caller, service_id)
        if row["is_deleted"]:
            raise ConflictError("Cannot edit a deleted service")
        fields = validate_draft(draft)

        assignments = [
            "title = ?",
            "description = ?",
            "category = ?",
            "price = ?",
            "pricing_type = ?",
        ]
        values: List[Any] = [
            fields["title"],
            fields["description"],
            fields["category"],
            fields["price"],
            fields["pricing_type"],
        ]
        uploaded: List[str] = []
        if draft.image_urls is not None:
            image_urls = await self.images.ingest(draft.image_urls)
            uploaded = [url for url in image_urls if url not in draft.image_urls]
            assignments.append("image_urls = ?")
            values.append(json.dumps(image_urls) if image_urls else None)
        assignments.append("updated_at = ?")
        values.extend([utcnow(), service_id, caller.id])

        with self.db.session() as conn:
            cursor = conn.execute(
                f"UPDATE services SET {', '.join(assignments)} "
                "WHERE id = ? AND seller_id = ? AND is_deleted = 0",
                tuple(values),
            )
            if cursor.rowcount == 0:
                # Deleted (approved) between the check above and this write.
                if uploaded:
                    logger.warning(
                        "Service %s was deleted during an edit; orphaned uploads: %s",
                        service_id, ", ".join(uploaded),
                    )
                raise ConflictError("Cannot edit a deleted service")
            updated = conn.execute(
                f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?", (service_id,)
            ).fetchone()
        logger.info("User %s updated service %s", caller.id, service_id)
        return service_from_row(updated)

    async def toggle_service(self, caller: Caller, service_id: int) -> ServiceToggleResult:
        """Flip ``is_active`` on a listing the caller owns.

        Every call flips the state, so two calls in a row restore it.
        """
        with self.db.session() as conn:
            row = load_owned_service(conn, caller, service_id)
            if row["is_deleted"]:
                raise ConflictError("Cannot toggle status of a deleted service")
            cursor = conn.execute(
                """
                UPDATE services
                SET is_active = CASE WHEN is_active = 1 THEN 0 ELSE 1 END, updated_at = ?
                WHERE id = ? AND seller_id = ? AND is_deleted = 0
                """,
                (utcnow(), service_id, caller.id),
            )
            if cursor.rowcount == 0:
                raise ConflictError("Cannot toggle status of a deleted service")
            updated = conn.execute(
                f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?", (service_id,)
            ).fetchone()
        service = service_from_row(updated)
        state = "active" if service.is_active else "paused"
        logger.info("User %s set service %s %s", caller.id, service_id, state)
        return ServiceToggleResult(message=f"Service is now {state}", service=service)

    async def list_mine(self, caller: Caller) -> List[ServiceRead]:
        """All of the caller's listings, paused and deleted included, newest first."""
        with self.db.session() as conn:
            rows = conn.execute(
                f"SELECT {SERVICE_COLUMNS} FROM services WHERE seller_id = ? "
                "ORDER BY created_at DESC, id DESC",
                (caller.id,),
            ).fetchall()
        return [service_from_row(row) for row in rows]

    async def list_public(self) -> List[PublicServiceRead]:
        """Live listings (active and not deleted), newest first, with seller names."""
        with self.db.session() as conn:
            rows = conn.execute(
                """
                SELECT s.id, s.title, s.description, s.category, s.price, s.pricing_type,
                       s.image_urls, s.seller_id, s.created_at,
                       u.full_name AS seller_name, u.email AS seller_email
                FROM services s
                LEFT JOIN users u ON u.id = s.seller_id
                WHERE s.is_active = 1 AND s.is_deleted = 0
                ORDER BY s.created_at DESC, s.id DESC
                """
            ).fetchall()
        return [self._public_from_row(row) for row in rows]

    async def get_public(self, service_id: int) -> PublicServiceRead:
        """One live listing; paused or deleted listings are reported as not found."""
        with self.db.session() as conn:
            row = conn.execute(
                """
                SELECT s.id, s.title, s.description, s.category, s.price, s.pricing_type,
                       s.image_urls, s.seller_id, s.created_at,
                       u.full_name AS seller_name, u.email AS seller_email
                FROM services s
                LEFT JOIN users u ON u.id = s.seller_id
                WHERE s.id = ? AND s.is_active = 1 AND s.is_deleted = 0
                """,
                (service_id,),
            ).fetchone()
        if not row:
            raise NotFoundError("Service not found")
        return self._public_from_row(row)

    @staticmethod
    def _public_from_row(row: sqlite3.Row) -> PublicServiceRead:
        return PublicServiceRead(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            price=row["price"],
            pricing_type=row["pricing_type"],
            image_urls=_image_list(row["image_urls"]),
            seller_id=row["seller_id"],
            seller_name=row["seller_name"] or UNKNOWN_SELLER,
            seller_email=row["seller_email"],
            created_at=row["created_at"],
        )

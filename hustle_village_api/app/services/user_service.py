"""
User directory.

Maps identity‑provider e‑mails and subjects to application user
records.  Profiles are created or refreshed only after the provider has
verified a passcode (``upsert_verified``); everything else reads.
"""

import logging
import sqlite3
from typing import Optional

from ..core.config import Settings
from ..core.db import Database, utcnow
from ..core.errors import NotFoundError, ValidationError
from ..schemas.user import UserRead


logger = logging.getLogger(__name__)

ROLES = ("user", "admin")

_USER_COLUMNS = "id, email, full_name, phone_number, role, created_at"


def _to_user(row: sqlite3.Row) -> UserRead:
    return UserRead(
        id=row["id"],
        email=row["email"],
        full_name=row["full_name"] or "",
        phone_number=row["phone_number"] or "",
        role=row["role"],
        created_at=row["created_at"],
    )


class UserDirectory:
    """Single source of truth for identity‑to‑profile mapping."""

    def __init__(self, db: Database, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    def is_allowed_email(self, email: str) -> bool:
        """Whether ``email`` belongs to one of the allow‑listed institutional domains."""
        email = email.strip().lower()
        if email.count("@") != 1:
            return False
        domain = email.rsplit("@", 1)[1]
        return any(
            domain == allowed or domain.endswith("." + allowed)
            for allowed in self.settings.allowed_domains
        )

    async def get_by_email(self, email: str) -> Optional[UserRead]:
        with self.db.session() as conn:
            row = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        return _to_user(row) if row else None

    async def get_by_id(self, user_id: int) -> Optional[UserRead]:
        with self.db.session() as conn:
            row = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return _to_user(row) if row else None

    async def upsert_verified(
        self,
        email: str,
        subject: Optional[str],
        full_name: str = "",
        phone_number: str = "",
    ) -> UserRead:
        """Create the profile for a freshly verified identity, or refresh it.

        Existing name and phone are only overwritten by non‑empty
        values.  E‑mails listed in ``ADMIN_EMAILS`` are given the
        ``admin`` role; other roles are left untouched.  E‑mails outside
        the allowed domains are refused.
        """
        email = email.strip().lower()
        if not self.is_allowed_email(email):
            raise ValidationError("Must use an institutional email")
        now = utcnow()
        is_admin = email in self.settings.admin_email_list
        with self.db.session() as conn:
            existing = conn.execute(
                "SELECT id FROM users WHERE email = ?", (email,)
            ).fetchone()
            if existing:
                conn.execute(
                    """
                    UPDATE users
                    SET full_name = CASE WHEN ? != '' THEN ? ELSE full_name END,
                        phone_number = CASE WHEN ? != '' THEN ? ELSE phone_number END,
                        auth_subject = COALESCE(?, auth_subject),
                        role = CASE WHEN ? THEN 'admin' ELSE role END,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        full_name, full_name,
                        phone_number, phone_number,
                        subject,
                        1 if is_admin else 0,
                        now,
                        existing["id"],
                    ),
                )
                user_id = existing["id"]
                logger.info("Refreshed profile for user %s", user_id)
            else:
                cursor = conn.execute(
                    """
                    INSERT INTO users (email, full_name, phone_number, auth_subject, role, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        email,
                        full_name,
                        phone_number,
                        subject,
                        "admin" if is_admin else "user",
                        now,
                        now,
                    ),
                )
                user_id = cursor.lastrowid
                logger.info("Created profile for user %s", user_id)
            row = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return _to_user(row)

    async def set_role(self, email: str, role: str) -> UserRead:
        """Assign ``role`` to the user with ``email``."""
        if role not in ROLES:
            raise ValidationError(f"Invalid role. Must be one of: {', '.join(ROLES)}")
        with self.db.session() as conn:
            cursor = conn.execute(
                "UPDATE users SET role = ?, updated_at = ? WHERE email = ?",
                (role, utcnow(), email.strip().lower()),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("User not found")
            row = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?", (email.strip().lower(),)
            ).fetchone()
        logger.info("User %s now has role %s", row["id"], role)
        return _to_user(row)

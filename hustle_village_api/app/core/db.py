"""
SQLite database integration and simple migration system.

``Database`` owns the path of the SQLite file and hands out
connections.  One instance is built by ``create_app`` and stored on
``app.state``; routes receive it through the ``get_db`` dependency and
pass it to the services they construct, so nothing in the application
reaches for a global connection.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from fastapi import Request

from .config import Settings
from .errors import UnavailableError


logger = logging.getLogger(__name__)


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: Initial schema
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            full_name TEXT NOT NULL DEFAULT '',
            phone_number TEXT NOT NULL DEFAULT '',
            auth_subject TEXT,
            role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS services (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            seller_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            category TEXT NOT NULL CHECK (category IN (
                'food_baking', 'design_creative', 'tutoring',
                'beauty_hair', 'events_music', 'tech_dev'
            )),
            price REAL NOT NULL CHECK (price >= 0),
            pricing_type TEXT NOT NULL CHECK (pricing_type IN ('fixed', 'hourly', 'negotiable')),
            image_urls TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            deleted_at TEXT,
            CHECK (is_deleted = 0 OR is_active = 0),
            FOREIGN KEY(seller_id) REFERENCES users(id)
        );

        CREATE TABLE IF NOT EXISTS service_delete_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            service_id INTEGER NOT NULL,
            seller_id INTEGER NOT NULL,
            reason TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'approved', 'denied')),
            requested_at TEXT NOT NULL,
            admin_id INTEGER,
            admin_comment TEXT,
            processed_at TEXT,
            FOREIGN KEY(service_id) REFERENCES services(id),
            FOREIGN KEY(seller_id) REFERENCES users(id),
            FOREIGN KEY(admin_id) REFERENCES users(id)
        );
        """,
    ),
    # Migration 2: indices
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_services_seller_id ON services(seller_id);
        CREATE INDEX IF NOT EXISTS idx_services_public ON services(is_active, is_deleted, created_at);
        CREATE INDEX IF NOT EXISTS idx_delete_requests_status ON service_delete_requests(status);
        -- At most one pending request per service, enforced by the store so
        -- that two concurrent requests cannot both pass the pre-check.
        CREATE UNIQUE INDEX IF NOT EXISTS uq_delete_requests_one_pending
            ON service_delete_requests(service_id) WHERE status = 'pending';
        """,
    ),
]


def utcnow() -> str:
    """Current UTC time as an ISO‑8601 string, the format stored in every timestamp column."""
    return datetime.now(timezone.utc).isoformat()


class Database:
    """Connection factory for the application's SQLite file."""

    def __init__(self, path: str, timeout: float = 5.0) -> None:
        self.path = path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Resolve ``settings.database_url`` and build a ``Database``.

        Absolute paths are used as is; relative ones are resolved
        against the project root.
        """
        db_url = settings.database_url
        if not os.path.isabs(db_url):
            base_dir = Path(__file__).resolve().parent.parent.parent.parent
            db_url = str((base_dir / db_url).resolve())
        return cls(db_url, timeout=settings.database_timeout_seconds)

    def connect(self) -> sqlite3.Connection:
        """Create and return a new SQLite connection.

        Rows are returned as ``sqlite3.Row`` so columns can be read by
        name.  ``timeout`` bounds how long a statement waits on a
        locked database before failing.
        """
        try:
            conn = sqlite3.connect(self.path, timeout=self.timeout)
        except sqlite3.OperationalError as exc:
            raise UnavailableError("Database is unavailable") from exc
        conn.row_factory = sqlite3.Row
        # Foreign key support is off by default in SQLite and must be
        # enabled per connection.
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; commit on success, roll back on error, always close.

        ``sqlite3.OperationalError`` (locked or unreachable database) is
        re‑raised as ``UnavailableError`` so callers see a retryable
        failure instead of an internal error.
        """
        conn = self.connect()
        try:
            yield conn
            conn.commit()
        except sqlite3.OperationalError as exc:
            conn.rollback()
            logger.error("Database operation failed: %s", exc)
            raise UnavailableError("Database is unavailable") from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init(self) -> None:
        """Initialise the database and apply pending migrations.

        Creates the ``migrations`` table if it does not exist, checks the
        current schema version, and applies any new migrations defined in
        ``MIGRATIONS``.  If you add a new migration, append it with an
        incremented version number.
        """
        with self.session() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
            )
            row = cursor.execute("SELECT MAX(version) AS version FROM migrations").fetchone()
            current_version = row["version"] if row and row["version"] is not None else 0

            for version, sql in MIGRATIONS:
                if version > current_version:
                    cursor.executescript(sql)
                    cursor.execute(
                        "INSERT INTO migrations (version) VALUES (?)", (version,)
                    )
                    current_version = version
                    logger.info("Applied migration %s", version)


def get_db(request: Request) -> Database:
    """FastAPI dependency returning the application's ``Database``."""
    return request.app.state.db

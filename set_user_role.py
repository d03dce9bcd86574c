#!/usr/bin/env python3
"""
Grant or revoke the admin role for a HustleVillage user.

Moderation endpoints require the ``admin`` role.  Besides listing
e‑mails in ``ADMIN_EMAILS`` (applied on the next signup verification),
an operator can change a role directly in the SQLite database with this
script.  The user must already have a profile.

Usage:
    python set_user_role.py --db ./hustle_village.db --email ama.mensah@ashesi.edu.gh --role admin
"""

import argparse
import asyncio
import os
import sys

from hustle_village_api.app.core.config import settings
from hustle_village_api.app.core.db import Database
from hustle_village_api.app.core.errors import ServiceError
from hustle_village_api.app.services.user_service import ROLES, UserDirectory


def main():
    ap = argparse.ArgumentParser(description="Set a user's role (SQLite).")
    ap.add_argument("--db", help="Path to SQLite DB file (defaults to DATABASE_URL)")
    ap.add_argument("--email", required=True, help="User email to update")
    ap.add_argument("--role", required=True, choices=ROLES, help="Role to assign")
    args = ap.parse_args()

    db = Database(args.db) if args.db else Database.from_settings(settings)
    if not os.path.exists(db.path):
        print(f"[!] DB not found: {db.path}", file=sys.stderr)
        sys.exit(1)

    users = UserDirectory(db, settings)
    try:
        user = asyncio.run(users.set_role(args.email, args.role))
    except ServiceError as exc:
        print(f"[!] {exc.message}: {args.email}", file=sys.stderr)
        sys.exit(2)
    print(f"[+] {user.email} now has role: {user.role}")


if __name__ == "__main__":
    main()

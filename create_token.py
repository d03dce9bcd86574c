#!/usr/bin/env python3
"""
Mint a bearer token for local development.

Only useful with ``AUTH_MODE=local``: the token is signed with
``JWT_SECRET`` and carries the given e‑mail, which must already have a
profile in the database.

Usage:
    JWT_SECRET=dev-secret python create_token.py --email ama.mensah@ashesi.edu.gh --days 365
"""

import argparse
import sys
import uuid

from hustle_village_api.app.core.config import settings
from hustle_village_api.app.core.security import create_access_token


def main():
    ap = argparse.ArgumentParser(description="Create a locally signed access token.")
    ap.add_argument("--email", required=True, help="E-mail of an existing user")
    ap.add_argument("--subject", help="Subject claim; a random UUID if omitted")
    ap.add_argument("--days", type=int, default=1, help="Lifetime in days (default: 1)")
    args = ap.parse_args()

    if not settings.jwt_secret:
        print("[!] JWT_SECRET is not set.", file=sys.stderr)
        sys.exit(1)

    token = create_access_token(
        {"sub": args.subject or str(uuid.uuid4()), "email": args.email.strip().lower()},
        settings.jwt_secret,
        expires_delta=args.days * 24 * 60 * 60,
    )
    print(token)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Mint a bearer token for local testing against the API.

Usage:
    python issue_dev_token.py <user_id> [--admin] [--ttl SECONDS]
"""

import argparse

from courtbook.auth import ROLE_ADMIN, ROLE_USER, issue_token
from courtbook.config import AUTH_TOKEN_TTL_SECONDS


def main() -> None:
    parser = argparse.ArgumentParser(description="Mint an HS256 bearer token (uses AUTH_SECRET)")
    parser.add_argument("user_id")
    parser.add_argument("--admin", action="store_true", help="issue an admin token")
    parser.add_argument("--ttl", type=int, default=AUTH_TOKEN_TTL_SECONDS, help="lifetime in seconds")
    args = parser.parse_args()

    token = issue_token(args.user_id, role=ROLE_ADMIN if args.admin else ROLE_USER, ttl_seconds=args.ttl)
    print(token)


if __name__ == "__main__":
    main()

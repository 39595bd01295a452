#!/usr/bin/env python3
"""Quick script to check the booking table and its active-slot unique index"""

import sys

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from courtbook.database import engine

REQUIRED_INDEXES = ["uq_booking_active_slot"]


def check_booking_schema(target: Engine) -> bool:
    """Check that the booking table exists with the index that enforces slot exclusivity"""
    inspector = inspect(target)

    print(f"Database: {target.url}")
    print()

    if "booking" not in inspector.get_table_names():
        print("✗ booking MISSING")
        print("Run migrations with: alembic upgrade head")
        return False
    print("✓ booking exists")

    index_names = {ix["name"] for ix in inspector.get_indexes("booking")}
    missing = [name for name in REQUIRED_INDEXES if name not in index_names]
    for name in REQUIRED_INDEXES:
        print(f"{'✗' if name in missing else '✓'} index {name}{' MISSING' if name in missing else ''}")

    print()
    if missing:
        print("ERROR: slot exclusivity is not enforced by the database!")
        print("Start the API once (startup creates it) or run: alembic upgrade head")
        return False
    print("Booking schema OK")
    return True


if __name__ == "__main__":
    try:
        success = check_booking_schema(engine)
        sys.exit(0 if success else 1)
    except Exception as e:
        print(f"Error checking booking schema: {e}")
        import traceback

        traceback.print_exc()
        sys.exit(1)

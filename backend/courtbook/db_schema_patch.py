from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Columns we must ensure exist in the "booking" table.
# (name, sqlite_type, postgres_type)
REQUIRED_BOOKING_COLUMNS: List[Tuple[str, str, str]] = [
    ("note", "TEXT NOT NULL DEFAULT ''", "TEXT NOT NULL DEFAULT ''"),
    ("canceled_by", "VARCHAR(64)", "VARCHAR(64)"),
    ("updated_at", "DATETIME", "TIMESTAMP"),
]

ACTIVE_SLOT_INDEX = "uq_booking_active_slot"
_ACTIVE_SLOT_INDEX_SQL = (
    f"CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_SLOT_INDEX} "
    "ON {table} (slot_date, court, hour) "
    "WHERE status IN ('booked', 'checked_in')"
)


def _is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name.lower() == "sqlite"


def _table_exists(engine: Engine, table_name: str) -> bool:
    with engine.connect() as conn:
        if _is_sqlite(engine):
            result = conn.execute(
                text("SELECT name FROM sqlite_master WHERE type='table' AND name=:table_name"),
                {"table_name": table_name},
            ).fetchone()
            return bool(result)
        result = conn.execute(
            text("""
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public' AND table_name = :table_name
            )
        """),
            {"table_name": table_name},
        ).fetchone()
        return bool(result and result[0])


def _get_existing_columns(engine: Engine, table_name: str) -> Dict[str, str]:
    cols: Dict[str, str] = {}
    with engine.connect() as conn:
        if _is_sqlite(engine):
            res = conn.execute(text(f"PRAGMA table_info({table_name});")).fetchall()
            # PRAGMA table_info returns rows: (cid, name, type, notnull, dflt_value, pk)
            for row in res:
                cols[str(row[1])] = str(row[2])
        else:
            res = conn.execute(
                text("""
                SELECT column_name, data_type
                FROM information_schema.columns
                WHERE table_schema = 'public' AND table_name = :table_name;
            """),
                {"table_name": table_name},
            ).fetchall()
            for row in res:
                cols[str(row[0])] = str(row[1])
    return cols


def ensure_booking_columns(engine: Engine) -> None:
    """
    Idempotently adds columns that older booking tables lack.
    Safe to run at every startup.
    """
    from courtbook.models.booking import Booking

    table = Booking.__table__.name
    try:
        if not _table_exists(engine, table):
            # create_all will build it with every column
            return

        existing = _get_existing_columns(engine, table)
        with engine.begin() as conn:
            for name, sqlite_type, pg_type in REQUIRED_BOOKING_COLUMNS:
                if name in existing:
                    continue
                if _is_sqlite(engine):
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {sqlite_type};"))
                else:
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {name} {pg_type};"))
                logger.info("Added column %s.%s", table, name)
    except Exception as e:
        logger.warning(f"Failed to ensure booking columns: {e}")


def ensure_booking_indexes(engine: Engine) -> bool:
    """
    Idempotently creates the partial unique index that keeps one active
    booking per slot. Returns True when the index is in place.

    Creation fails if the table already holds two active bookings for the same
    slot; that is logged as an error because slot exclusivity then only holds
    inside a single process.
    """
    from courtbook.models.booking import Booking

    table = Booking.__table__.name
    if not _table_exists(engine, table):
        return False
    try:
        with engine.begin() as conn:
            conn.execute(text(_ACTIVE_SLOT_INDEX_SQL.format(table=table)))
        return True
    except Exception as e:
        logger.error(f"Could not create {ACTIVE_SLOT_INDEX} on {table}; resolve duplicate active bookings: {e}")
        return False
